"""DynamoDB backends implementing IHelpRequestStore and IKnowledgeStore.

Help requests share one table with their pending-duplicate guard items:

    REQUEST#{id}        / META                 the request itself
    PENDING#{requester} / QUESTION#{sha256}    exists only while pending

Creating a request and releasing its guard happen in transactions, so two
concurrent creates for the same requester and question cannot both win and
a pending->terminal transition is a conditional write on the current status.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, TypeVar

import boto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from frontdesk.core.exceptions import StoreUnavailableError
from frontdesk.models.help_request import HelpRequest, HelpRequestStatus, KnowledgeEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

HELP_REQUESTS_TABLE = "frontdesk-help-requests"
KNOWLEDGE_TABLE = "frontdesk-knowledge-base"
STATUS_INDEX = "status-created-index"
REQUESTER_INDEX = "requester-resolved-index"

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_serializer = TypeSerializer()


def _iso(value: datetime) -> str:
    """Fixed-width UTC timestamp so string order equals time order."""
    return value.astimezone(timezone.utc).strftime(_TS_FORMAT)


def _parse(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


def _question_key(question: str) -> str:
    return "QUESTION#" + hashlib.sha256(question.encode("utf-8")).hexdigest()


def _marshal(item: dict[str, Any]) -> dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in item.items()}


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class _DynamoBase:
    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._client = self._ddb.meta.client

    def _table_name(self, base: str) -> str:
        return f"{base}{self._table_suffix}"

    def _table(self, base: str):
        return self._ddb.Table(self._table_name(base))

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking boto3 call off the event loop, wrapping driver errors."""
        try:
            return await asyncio.to_thread(partial(fn, *args, **kwargs))
        except (ClientError, BotoCoreError) as exc:
            raise StoreUnavailableError(f"DynamoDB {fn.__name__} failed: {exc}") from exc

    def _query_all(self, table_base: str, **kwargs: Any) -> list[dict[str, Any]]:
        tbl = self._table(table_base)
        items: list[dict[str, Any]] = []
        while True:
            resp = tbl.query(**kwargs)
            items.extend(resp.get("Items", []))
            if "LastEvaluatedKey" not in resp:
                return items
            kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]

    def _scan_all(self, table_base: str, **kwargs: Any) -> list[dict[str, Any]]:
        tbl = self._table(table_base)
        items: list[dict[str, Any]] = []
        while True:
            resp = tbl.scan(**kwargs)
            items.extend(resp.get("Items", []))
            if "LastEvaluatedKey" not in resp:
                return items
            kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]


def _request_to_item(request: HelpRequest) -> dict[str, Any]:
    item: dict[str, Any] = {
        "PK": f"REQUEST#{request.id}",
        "SK": "META",
        "id": request.id,
        "question": request.question,
        "requester_id": request.requester_id,
        "status": request.status.value,
        "created_at": _iso(request.created_at),
    }
    if request.resolved_at is not None:
        item["resolved_at"] = _iso(request.resolved_at)
    if request.answer is not None:
        item["answer"] = request.answer
    if request.knowledge_entry_id is not None:
        item["knowledge_entry_id"] = request.knowledge_entry_id
    return item


def _item_to_request(item: dict[str, Any]) -> HelpRequest:
    return HelpRequest(
        id=item["id"],
        question=item["question"],
        requester_id=item["requester_id"],
        status=item["status"],
        created_at=_parse(item["created_at"]),
        resolved_at=_parse(item.get("resolved_at")),
        answer=item.get("answer"),
        knowledge_entry_id=item.get("knowledge_entry_id"),
    )


class DynamoDBHelpRequestStore(_DynamoBase):
    """Production IHelpRequestStore backed by DynamoDB."""

    MAX_CREATE_ATTEMPTS = 3

    def _guard_key(self, requester_id: str, question: str) -> dict[str, str]:
        return {"PK": f"PENDING#{requester_id}", "SK": _question_key(question)}

    def _get_sync(self, request_id: str) -> HelpRequest | None:
        resp = self._table(HELP_REQUESTS_TABLE).get_item(
            Key={"PK": f"REQUEST#{request_id}", "SK": "META"}, ConsistentRead=True,
        )
        item = resp.get("Item")
        return _item_to_request(item) if item else None

    def _find_pending_sync(self, requester_id: str, question: str) -> HelpRequest | None:
        resp = self._table(HELP_REQUESTS_TABLE).get_item(
            Key=self._guard_key(requester_id, question), ConsistentRead=True,
        )
        guard = resp.get("Item")
        if not guard:
            return None
        request = self._get_sync(guard["request_id"])
        return request if request and request.is_pending else None

    def _create_pending_sync(self, request: HelpRequest) -> tuple[HelpRequest, bool]:
        table_name = self._table_name(HELP_REQUESTS_TABLE)
        guard = {**self._guard_key(request.requester_id, request.question), "request_id": request.id}
        for _ in range(self.MAX_CREATE_ATTEMPTS):
            try:
                self._client.transact_write_items(TransactItems=[
                    {"Put": {
                        "TableName": table_name,
                        "Item": _marshal(guard),
                        "ConditionExpression": "attribute_not_exists(PK)",
                    }},
                    {"Put": {"TableName": table_name, "Item": _marshal(_request_to_item(request))}},
                ])
                return request, True
            except ClientError as exc:
                if _error_code(exc) != "TransactionCanceledException":
                    raise
            existing = self._find_pending_sync(request.requester_id, request.question)
            if existing is not None:
                return existing, False
            # Guard was released between our write and read; try again.
        raise StoreUnavailableError(
            f"Could not create help request for requester {request.requester_id!r}: guard contention"
        )

    def _transition_sync(
        self,
        request_id: str,
        expected: HelpRequestStatus,
        status: HelpRequestStatus,
        resolved_at: datetime,
        answer: str | None,
    ) -> HelpRequest | None:
        current = self._get_sync(request_id)
        if current is None or current.status != expected:
            return None
        table_name = self._table_name(HELP_REQUESTS_TABLE)
        update_expr = "SET #s = :status, resolved_at = :resolved_at"
        values: dict[str, Any] = {
            ":status": status.value,
            ":expected": expected.value,
            ":resolved_at": _iso(resolved_at),
        }
        if answer is not None:
            update_expr += ", answer = :answer"
            values[":answer"] = answer
        items: list[dict[str, Any]] = [{"Update": {
            "TableName": table_name,
            "Key": _marshal({"PK": f"REQUEST#{request_id}", "SK": "META"}),
            "UpdateExpression": update_expr,
            "ConditionExpression": "#s = :expected",
            "ExpressionAttributeNames": {"#s": "status"},
            "ExpressionAttributeValues": _marshal(values),
        }}]
        if expected is HelpRequestStatus.PENDING:
            items.append({"Delete": {
                "TableName": table_name,
                "Key": _marshal(self._guard_key(current.requester_id, current.question)),
            }})
        try:
            self._client.transact_write_items(TransactItems=items)
        except ClientError as exc:
            if _error_code(exc) == "TransactionCanceledException":
                logger.info("Transition of %s lost a race (expected %s)", request_id, expected)
                return None
            raise
        return self._get_sync(request_id)

    def _link_sync(self, request_id: str, entry_id: str) -> None:
        self._table(HELP_REQUESTS_TABLE).update_item(
            Key={"PK": f"REQUEST#{request_id}", "SK": "META"},
            UpdateExpression="SET knowledge_entry_id = :entry",
            ConditionExpression="attribute_exists(PK)",
            ExpressionAttributeValues={":entry": entry_id},
        )

    # ---- IHelpRequestStore methods ----

    async def get(self, request_id: str) -> HelpRequest | None:
        return await self._call(self._get_sync, request_id)

    async def create_pending(self, request: HelpRequest) -> tuple[HelpRequest, bool]:
        return await self._call(self._create_pending_sync, request)

    async def find_pending(self, requester_id: str, question: str) -> HelpRequest | None:
        return await self._call(self._find_pending_sync, requester_id, question)

    async def transition(
        self,
        request_id: str,
        *,
        expected: HelpRequestStatus,
        status: HelpRequestStatus,
        resolved_at: datetime,
        answer: str | None = None,
    ) -> HelpRequest | None:
        return await self._call(self._transition_sync, request_id, expected, status, resolved_at, answer)

    async def link_knowledge_entry(self, request_id: str, entry_id: str) -> None:
        await self._call(self._link_sync, request_id, entry_id)

    async def list_resolved_since(self, requester_id: str, since: datetime) -> list[HelpRequest]:
        items = await self._call(
            self._query_all,
            HELP_REQUESTS_TABLE,
            IndexName=REQUESTER_INDEX,
            KeyConditionExpression=Key("requester_id").eq(requester_id) & Key("resolved_at").gte(_iso(since)),
            FilterExpression=Attr("status").eq(HelpRequestStatus.RESOLVED.value),
            ScanIndexForward=False,
        )
        return [_item_to_request(i) for i in items]

    async def list_stale_pending(self, cutoff: datetime) -> list[HelpRequest]:
        items = await self._call(
            self._query_all,
            HELP_REQUESTS_TABLE,
            IndexName=STATUS_INDEX,
            KeyConditionExpression=(
                Key("status").eq(HelpRequestStatus.PENDING.value) & Key("created_at").lte(_iso(cutoff))
            ),
        )
        return [_item_to_request(i) for i in items]

    async def list_requests(self, status: HelpRequestStatus | None = None) -> list[HelpRequest]:
        if status is not None:
            items = await self._call(
                self._query_all,
                HELP_REQUESTS_TABLE,
                IndexName=STATUS_INDEX,
                KeyConditionExpression=Key("status").eq(status.value),
                ScanIndexForward=False,
            )
            return [_item_to_request(i) for i in items]
        items = await self._call(
            self._scan_all, HELP_REQUESTS_TABLE, FilterExpression=Attr("SK").eq("META"),
        )
        requests = [_item_to_request(i) for i in items]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)


class DynamoDBKnowledgeStore(_DynamoBase):
    """Production IKnowledgeStore backed by DynamoDB."""

    def _put_sync(self, entry: KnowledgeEntry) -> None:
        self._table(KNOWLEDGE_TABLE).put_item(Item={
            "PK": f"ENTRY#{entry.id}",
            "SK": "META",
            "id": entry.id,
            "question": entry.question,
            "answer": entry.answer,
            "source": entry.source.value,
            "created_at": _iso(entry.created_at),
        })

    def _delete_sync(self, entry_id: str) -> bool:
        resp = self._table(KNOWLEDGE_TABLE).delete_item(
            Key={"PK": f"ENTRY#{entry_id}", "SK": "META"}, ReturnValues="ALL_OLD",
        )
        return "Attributes" in resp

    # ---- IKnowledgeStore methods ----

    async def add(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        await self._call(self._put_sync, entry)
        return entry

    async def list_entries(self) -> list[KnowledgeEntry]:
        items = await self._call(self._scan_all, KNOWLEDGE_TABLE)
        entries = [
            KnowledgeEntry(
                id=i["id"],
                question=i["question"],
                answer=i["answer"],
                source=i["source"],
                created_at=_parse(i["created_at"]),
            )
            for i in items
        ]
        return sorted(entries, key=lambda e: e.created_at)

    async def delete(self, entry_id: str) -> bool:
        return await self._call(self._delete_sync, entry_id)
