"""DynamoDB-backed keyed conditional store."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.session import get_session

from .exceptions import AuthenticationError, NetworkError, StoreError, ValidationError
from .models import ID_ATTR
from .store import Condition, Item, Mutations, UpdateOutcome, render_update

logger = logging.getLogger(__name__)

_TARGET_PREFIX = "DynamoDB_20120810"
_CONTENT_TYPE = "application/x-amz-json-1.0"
_CONDITION_FAILED = "ConditionalCheckFailedException"
_AUTH_ERRORS = {
    "AccessDeniedException",
    "ExpiredTokenException",
    "IncompleteSignatureException",
    "InvalidSignatureException",
    "MissingAuthenticationTokenException",
    "UnrecognizedClientException",
}


class DynamoDBStore:
    """Async keyed conditional store on a DynamoDB table.

    Speaks the DynamoDB JSON protocol over ``httpx.AsyncClient`` and signs
    each request with botocore's SigV4 signer.
    """

    def __init__(
        self,
        table_name: str = "Inventory",
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        credentials: Any = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the DynamoDB store.

        Args:
            table_name: Table holding the lockable records
            region: AWS region used for the endpoint and request signing
            endpoint_url: Override endpoint (DynamoDB Local, LocalStack, ...)
            credentials: botocore credentials; resolved from the default
                provider chain when omitted
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport, mainly for tests
        """
        if not table_name:
            raise ValidationError("Table name must not be empty")
        self.table_name = table_name
        self.region = region
        self.endpoint_url = (endpoint_url or f"https://dynamodb.{region}.amazonaws.com").rstrip("/") + "/"
        self._credentials = credentials
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _resolve_credentials(self):
        # The default provider chain may read files or query instance
        # metadata, so it runs off the event loop.
        if self._credentials is None:
            credentials = await asyncio.to_thread(get_session().get_credentials)
            if credentials is None:
                raise AuthenticationError("No AWS credentials available for DynamoDB")
            self._credentials = credentials
        return await asyncio.to_thread(self._credentials.get_frozen_credentials)

    def _serialize(self, value: Any) -> Dict[str, Any]:
        return self._serializer.serialize(value)

    def _deserialize_item(self, item: Optional[Dict[str, Any]]) -> Optional[Item]:
        if not item:
            return None
        return {name: self._deserializer.deserialize(value) for name, value in item.items()}

    def _signed_headers(self, credentials, operation: str, body: bytes) -> Dict[str, str]:
        request = AWSRequest(
            method="POST",
            url=self.endpoint_url,
            data=body,
            headers={
                "Content-Type": _CONTENT_TYPE,
                "X-Amz-Target": f"{_TARGET_PREFIX}.{operation}",
            },
        )
        SigV4Auth(credentials, "dynamodb", self.region).add_auth(request)
        return dict(request.headers.items())

    async def _call(self, operation: str, payload: Dict[str, Any]) -> httpx.Response:
        body = json.dumps(payload).encode("utf-8")
        credentials = await self._resolve_credentials()
        headers = self._signed_headers(credentials, operation, body)
        try:
            return await self.client.post(self.endpoint_url, content=body, headers=headers)
        except httpx.RequestError as e:
            raise NetworkError(f"Network error calling DynamoDB {operation}: {e}") from e

    @staticmethod
    def _parse_json(response: httpx.Response) -> Dict[str, Any]:
        try:
            return response.json() if response.content else {}
        except ValueError as e:
            raise NetworkError(f"Failed to parse response: {e}") from e

    @staticmethod
    def _error_type(data: Dict[str, Any]) -> str:
        return str(data.get("__type", "")).rsplit("#", 1)[-1]

    def _handle_response(self, response: httpx.Response) -> Dict[str, Any]:
        """Handle HTTP response and raise appropriate exceptions."""
        data = self._parse_json(response)
        if response.status_code < 400:
            return data
        error_type = self._error_type(data)
        message = data.get("message") or data.get("Message") or f"HTTP {response.status_code}"
        if response.status_code == 403 or error_type in _AUTH_ERRORS:
            raise AuthenticationError(f"{error_type or 'Forbidden'}: {message}")
        raise StoreError(f"{error_type or 'HTTP ' + str(response.status_code)}: {message}")

    async def conditional_update(
        self, key: str, condition: Condition, mutations: Mutations
    ) -> UpdateOutcome:
        rendered = render_update(condition, mutations)
        payload = {
            "TableName": self.table_name,
            "Key": {ID_ATTR: self._serialize(key)},
            "UpdateExpression": rendered.update_expression,
            "ConditionExpression": rendered.condition_expression,
            "ExpressionAttributeNames": rendered.names,
            "ReturnValues": "ALL_NEW",
            "ReturnValuesOnConditionCheckFailure": "ALL_OLD",
        }
        if rendered.values:
            payload["ExpressionAttributeValues"] = {
                placeholder: self._serialize(value) for placeholder, value in rendered.values.items()
            }

        response = await self._call("UpdateItem", payload)
        if response.status_code == 400:
            data = self._parse_json(response)
            if self._error_type(data) == _CONDITION_FAILED:
                logger.debug("Condition failed for %s", key)
                return UpdateOutcome(succeeded=False, item=self._deserialize_item(data.get("Item")))

        data = self._handle_response(response)
        return UpdateOutcome(succeeded=True, item=self._deserialize_item(data.get("Attributes")))

    async def put_record(self, item: Item) -> None:
        payload = {
            "TableName": self.table_name,
            "Item": {name: self._serialize(value) for name, value in item.items()},
        }
        self._handle_response(await self._call("PutItem", payload))

    async def get_record(self, key: str) -> Optional[Item]:
        payload = {
            "TableName": self.table_name,
            "Key": {ID_ATTR: self._serialize(key)},
            "ConsistentRead": True,
        }
        data = self._handle_response(await self._call("GetItem", payload))
        return self._deserialize_item(data.get("Item"))

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
