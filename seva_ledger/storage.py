"""
Document storage backends.

The core treats persistence as a set of named collections holding plain
dict documents addressable by an opaque string id:

- ``InMemoryStorage``: process-local dicts, used by tests and local runs
- ``DynamoDBStorage``: one DynamoDB table per collection via boto3

Both support conditional writes so the ledger can refuse to persist a
transaction whose service vanished, and settle with a compare-and-swap on
the status field.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from functools import reduce
from typing import Any, Mapping, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import PreconditionFailedError, StorageError

logger = logging.getLogger(__name__)

CUSTOMERS = "customers"
SERVICES = "services"
TRANSACTIONS = "transactions"

KEY_ATTRIBUTES = {
    CUSTOMERS: "id",
    SERVICES: "code",
    TRANSACTIONS: "id",
}


@dataclass(frozen=True)
class Precondition:
    """Fields another document must hold for a write to go through."""

    collection: str
    doc_id: str
    expected: Mapping[str, Any] = field(default_factory=dict)


def _matches(document: Optional[Mapping[str, Any]], expected: Mapping[str, Any]) -> bool:
    if document is None:
        return False
    return all(document.get(name) == value for name, value in expected.items())


class InMemoryStorage:
    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {name: {} for name in KEY_ATTRIBUTES}

    def _collection(self, collection: str) -> dict[str, dict]:
        return self.collections.setdefault(collection, {})

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        document = self._collection(collection).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    def scan(self, collection: str) -> list[dict]:
        return [copy.deepcopy(d) for d in self._collection(collection).values()]

    def count(self, collection: str) -> int:
        return len(self._collection(collection))

    def insert(self, collection: str, doc_id: str, document: Mapping[str, Any],
               require: Optional[Precondition] = None) -> None:
        if require is not None and not _matches(self.get(require.collection, require.doc_id), require.expected):
            raise PreconditionFailedError(
                f"{require.collection}/{require.doc_id} does not satisfy {dict(require.expected)}"
            )
        documents = self._collection(collection)
        if doc_id in documents:
            raise PreconditionFailedError(f"{collection}/{doc_id} already exists")
        documents[doc_id] = copy.deepcopy(dict(document))

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any],
               expected: Optional[Mapping[str, Any]] = None) -> dict:
        documents = self._collection(collection)
        current = documents.get(doc_id)
        if not _matches(current, expected or {}):
            raise PreconditionFailedError(f"{collection}/{doc_id} changed or does not exist")
        current.update(copy.deepcopy(dict(changes)))
        return copy.deepcopy(current)


def _to_item(document: Mapping[str, Any]) -> dict:
    item = {}
    for name, value in document.items():
        if value is None:
            continue
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, float):
            value = Decimal(str(value))
        item[name] = value
    return item


class DynamoDBStorage:
    """DynamoDB-backed collections: table ``{prefix}-{collection}``."""

    def __init__(self, table_prefix: str = "seva", region_name: Optional[str] = None,
                 endpoint_url: Optional[str] = None, resource=None):
        self.resource = resource or boto3.resource(
            "dynamodb", region_name=region_name, endpoint_url=endpoint_url
        )
        self.table_prefix = table_prefix
        self._serializer = TypeSerializer()

    def table_name(self, collection: str) -> str:
        return f"{self.table_prefix}-{collection}"

    def _table(self, collection: str):
        return self.resource.Table(self.table_name(collection))

    def _key(self, collection: str, doc_id: str) -> dict:
        return {KEY_ATTRIBUTES.get(collection, "id"): doc_id}

    def _fail(self, action: str, collection: str, error: Exception) -> StorageError:
        logger.error("DynamoDB %s on %s failed: %s", action, self.table_name(collection), error,
                     extra={"table": self.table_name(collection)})
        return StorageError(f"{action} on {collection} failed: {error}")

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        try:
            response = self._table(collection).get_item(Key=self._key(collection, doc_id), ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("get_item", collection, e) from e
        return response.get("Item")

    def scan(self, collection: str) -> list[dict]:
        table = self._table(collection)
        items: list[dict] = []
        scan_kwargs: dict[str, Any] = {"ConsistentRead": True}
        try:
            while True:
                response = table.scan(**scan_kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key
        except (ClientError, BotoCoreError) as e:
            raise self._fail("scan", collection, e) from e
        return items

    def count(self, collection: str) -> int:
        table = self._table(collection)
        total = 0
        scan_kwargs: dict[str, Any] = {"Select": "COUNT", "ConsistentRead": True}
        try:
            while True:
                response = table.scan(**scan_kwargs)
                total += response.get("Count", 0)
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key
        except (ClientError, BotoCoreError) as e:
            raise self._fail("scan", collection, e) from e
        return total

    def insert(self, collection: str, doc_id: str, document: Mapping[str, Any],
               require: Optional[Precondition] = None) -> None:
        item = _to_item(document)
        key_name = KEY_ATTRIBUTES.get(collection, "id")
        try:
            if require is None:
                self._table(collection).put_item(
                    Item=item,
                    ConditionExpression=Attr(key_name).not_exists(),
                )
                return
            self.resource.meta.client.transact_write_items(
                TransactItems=[
                    {"ConditionCheck": self._condition_check(require)},
                    {"Put": {
                        "TableName": self.table_name(collection),
                        "Item": {k: self._serializer.serialize(v) for k, v in item.items()},
                        "ConditionExpression": "attribute_not_exists(#pk)",
                        "ExpressionAttributeNames": {"#pk": key_name},
                    }},
                ]
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("ConditionalCheckFailedException", "TransactionCanceledException"):
                raise PreconditionFailedError(f"Conditional insert into {collection} rejected: {code}") from e
            raise self._fail("insert", collection, e) from e
        except BotoCoreError as e:
            raise self._fail("insert", collection, e) from e

    def _condition_check(self, require: Precondition) -> dict:
        names, values, clauses = {}, {}, []
        for i, (attr, value) in enumerate(require.expected.items()):
            names[f"#c{i}"] = attr
            values[f":c{i}"] = self._serializer.serialize(value)
            clauses.append(f"#c{i} = :c{i}")
        key_name = KEY_ATTRIBUTES.get(require.collection, "id")
        names["#pk"] = key_name
        clauses.insert(0, "attribute_exists(#pk)")
        check = {
            "TableName": self.table_name(require.collection),
            "Key": {key_name: self._serializer.serialize(require.doc_id)},
            "ConditionExpression": " AND ".join(clauses),
            "ExpressionAttributeNames": names,
        }
        if values:
            check["ExpressionAttributeValues"] = values
        return check

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any],
               expected: Optional[Mapping[str, Any]] = None) -> dict:
        changes = _to_item(changes)
        names = {f"#u{i}": attr for i, attr in enumerate(changes)}
        values = {f":u{i}": value for i, value in enumerate(changes.values())}
        update_expression = "SET " + ", ".join(f"#u{i} = :u{i}" for i in range(len(changes)))

        key_name = KEY_ATTRIBUTES.get(collection, "id")
        conditions = [Attr(key_name).exists()]
        conditions += [Attr(attr).eq(value) for attr, value in (expected or {}).items()]
        try:
            response = self._table(collection).update_item(
                Key=self._key(collection, doc_id),
                UpdateExpression=update_expression,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ConditionExpression=reduce(lambda a, b: a & b, conditions),
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise PreconditionFailedError(f"{collection}/{doc_id} changed or does not exist") from e
            raise self._fail("update_item", collection, e) from e
        except BotoCoreError as e:
            raise self._fail("update_item", collection, e) from e
        return response.get("Attributes", {})
