"""Diagnostic sinks for lock contention sequences.

A sink receives ``(holder_id, event, quantity, success)`` tuples while
holders contend for a lease. Sinks never influence the protocol; they
exist so a run can be explained afterwards.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol


class DiagnosticSink(Protocol):
    def record(
        self,
        holder_id: str,
        event: str,
        quantity: Optional[int] = None,
        success: Optional[bool] = None,
    ) -> None:
        """Record one event for ``holder_id``."""


class NullSink:
    """Sink that discards everything."""

    def record(
        self,
        holder_id: str,
        event: str,
        quantity: Optional[int] = None,
        success: Optional[bool] = None,
    ) -> None:
        pass


@dataclass(frozen=True)
class SequenceEvent:
    time_ms: int
    holder_id: str
    event: str
    quantity: Optional[int] = None
    success: Optional[bool] = None

    @property
    def short_holder(self) -> str:
        return self.holder_id[-4:]

    def describe(self) -> str:
        message = f"{self.event} (qty: {self.quantity})" if self.quantity else self.event
        if self.success is None:
            return message
        return f"{message} {'✓' if self.success else '✗'}"


class SequenceRecorder:
    """Collects events with millisecond offsets and renders a report."""

    def __init__(self, timer: Callable[[], float] = time.monotonic):
        self._timer = timer
        self._start = timer()
        self.events: List[SequenceEvent] = []

    def record(
        self,
        holder_id: str,
        event: str,
        quantity: Optional[int] = None,
        success: Optional[bool] = None,
    ) -> None:
        elapsed_ms = int((self._timer() - self._start) * 1000)
        self.events.append(SequenceEvent(elapsed_ms, holder_id, event, quantity, success))

    def by_holder(self) -> Dict[str, List[SequenceEvent]]:
        grouped: Dict[str, List[SequenceEvent]] = OrderedDict()
        for event in self.events:
            grouped.setdefault(event.holder_id, []).append(event)
        return grouped

    def render(self) -> str:
        """Full sequence followed by a per-holder breakdown."""
        lines = [
            "",
            "Full sequence of events:",
            "Time(ms) | Process      | Action",
            "---------+--------------+------------------",
        ]
        for event in self.events:
            lines.append(f"{event.time_ms:>8} | Process-{event.short_holder} | {event.describe()}")

        lines += ["", "Per-process summary:", "-------------+------------------"]
        for holder_id, events in self.by_holder().items():
            lines += self._render_holder(holder_id, events)
        return "\n".join(lines)

    @staticmethod
    def _render_holder(holder_id: str, events: List[SequenceEvent]) -> List[str]:
        pid = holder_id[-4:]
        lines = [
            "",
            f"Process-{pid} sequence:",
            "Time(ms) | Action",
            "---------+------------------",
        ]
        lines += [f"{event.time_ms:>8} | {event.describe()}" for event in events]

        quantity = next((e.quantity for e in events if e.quantity is not None), None)
        retries = sum(1 for e in events if "Retrying" in e.event)
        succeeded = any(e.event == "Chain extended" for e in events)

        lines += ["", f"Process-{pid} summary:", f"Attempted to extend: {quantity}"]
        if retries:
            lines.append(f"Retries: {retries}")
        lines.append(f"Total time: {events[-1].time_ms - events[0].time_ms}ms")
        lines.append(f"Outcome: {'Succeeded ✓' if succeeded else 'Failed ✗'}")
        lines.append("-------------+------------------")
        return lines
