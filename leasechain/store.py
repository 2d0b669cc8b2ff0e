"""Keyed conditional store contract.

A store holds records addressed by key and offers a single primitive:
apply a set of mutations to one record if, and only if, a predicate over
its current attributes holds. Updates to the same key are serialized by
the store; the lease protocol relies on nothing else.

Predicates are small expression trees that can be evaluated in-process
(for :class:`~leasechain.memory.InMemoryStore`) or rendered into a
DynamoDB ``ConditionExpression``.
"""

import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

Item = Dict[str, Any]

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "<": operator.lt,
    ">": operator.gt,
}


class _Placeholders:
    """Allocates expression attribute names and values while rendering."""

    def __init__(self):
        self.names: Dict[str, str] = {}
        self.values: Dict[str, Any] = {}

    def name(self, attribute: str) -> str:
        for placeholder, existing in self.names.items():
            if existing == attribute:
                return placeholder
        placeholder = f"#n{len(self.names)}"
        self.names[placeholder] = attribute
        return placeholder

    def value(self, value: Any) -> str:
        placeholder = f":v{len(self.values)}"
        self.values[placeholder] = value
        return placeholder


class Condition:
    """Base class for predicates over a record's attributes."""

    def evaluate(self, item: Optional[Item]) -> bool:
        raise NotImplementedError

    def render(self, placeholders: _Placeholders) -> str:
        raise NotImplementedError

    def __and__(self, other: "Condition") -> "Condition":
        return And(self, other)

    def __or__(self, other: "Condition") -> "Condition":
        return Or(self, other)


@dataclass(frozen=True)
class AttributeExists(Condition):
    attribute: str

    def evaluate(self, item: Optional[Item]) -> bool:
        return item is not None and self.attribute in item

    def render(self, placeholders: _Placeholders) -> str:
        return f"attribute_exists({placeholders.name(self.attribute)})"


@dataclass(frozen=True)
class AttributeNotExists(Condition):
    attribute: str

    def evaluate(self, item: Optional[Item]) -> bool:
        return item is None or self.attribute not in item

    def render(self, placeholders: _Placeholders) -> str:
        return f"attribute_not_exists({placeholders.name(self.attribute)})"


@dataclass(frozen=True)
class Compare(Condition):
    """``attribute <op> value``; false when the attribute is absent."""
    attribute: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported comparison operator: {self.op!r}")

    def evaluate(self, item: Optional[Item]) -> bool:
        if item is None or self.attribute not in item:
            return False
        try:
            return _OPERATORS[self.op](item[self.attribute], self.value)
        except TypeError:
            return False

    def render(self, placeholders: _Placeholders) -> str:
        name = placeholders.name(self.attribute)
        return f"{name} {self.op} {placeholders.value(self.value)}"


@dataclass(frozen=True)
class And(Condition):
    left: Condition
    right: Condition

    def evaluate(self, item: Optional[Item]) -> bool:
        return self.left.evaluate(item) and self.right.evaluate(item)

    def render(self, placeholders: _Placeholders) -> str:
        return f"({self.left.render(placeholders)} AND {self.right.render(placeholders)})"


@dataclass(frozen=True)
class Or(Condition):
    left: Condition
    right: Condition

    def evaluate(self, item: Optional[Item]) -> bool:
        return self.left.evaluate(item) or self.right.evaluate(item)

    def render(self, placeholders: _Placeholders) -> str:
        return f"({self.left.render(placeholders)} OR {self.right.render(placeholders)})"


@dataclass(frozen=True)
class Mutations:
    """Attributes to set and attributes to remove in one update."""
    set: Dict[str, Any] = field(default_factory=dict)
    remove: Tuple[str, ...] = ()

    def apply(self, item: Item) -> Item:
        updated = dict(item)
        updated.update(self.set)
        for attribute in self.remove:
            updated.pop(attribute, None)
        return updated

    def render(self, placeholders: _Placeholders) -> str:
        clauses = []
        if self.set:
            assignments = ", ".join(
                f"{placeholders.name(attribute)} = {placeholders.value(value)}"
                for attribute, value in self.set.items()
            )
            clauses.append(f"SET {assignments}")
        if self.remove:
            clauses.append("REMOVE " + ", ".join(placeholders.name(a) for a in self.remove))
        return " ".join(clauses)


@dataclass(frozen=True)
class RenderedUpdate:
    update_expression: str
    condition_expression: str
    names: Dict[str, str]
    values: Dict[str, Any]


def render_update(condition: Condition, mutations: Mutations) -> RenderedUpdate:
    """Render a conditional update into DynamoDB expression syntax."""
    placeholders = _Placeholders()
    update_expression = mutations.render(placeholders)
    condition_expression = condition.render(placeholders)
    return RenderedUpdate(
        update_expression=update_expression,
        condition_expression=condition_expression,
        names=placeholders.names,
        values=placeholders.values,
    )


@dataclass(frozen=True)
class UpdateOutcome:
    """Result of a conditional update.

    On success ``item`` is the record after the update. On failure it is
    the record as it stood when the condition was evaluated, or None if no
    record exists under the key.
    """
    succeeded: bool
    item: Optional[Item]


class KeyedConditionalStore(Protocol):
    """Store of records supporting atomic conditional updates."""

    async def conditional_update(
        self, key: str, condition: Condition, mutations: Mutations
    ) -> UpdateOutcome:
        """Apply ``mutations`` to ``key`` if ``condition`` holds."""

    async def put_record(self, item: Item) -> None:
        """Create or overwrite a record unconditionally (provisioning only)."""

    async def get_record(self, key: str) -> Optional[Item]:
        """Strongly consistent read of one record, for inspection."""
