"""
DynamoDB document store.

Table layout (created by infrastructure, not by this module):

  * users: partition key ``uid``. Every item carries ``entity = "user"`` so the
    ``fullName-index`` GSI (partition ``entity``, sort ``fullName``) returns all
    accounts in name order; list queries run against that index.
  * submissions: partition key ``id`` with GSIs
    ``studentUid-submittedAt-index`` and ``assignedTeacherUid-submittedAt-index``.
  * credentials: partition key ``email``.

DynamoDB applies ``Limit`` before ``FilterExpression``, so filtered list
queries keep following ``LastEvaluatedKey`` until a full page has been
collected.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import reduce
from typing import Any, Dict, List, Mapping, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from .. import config
from ..aws_clients import dynamodb_resource
from ..errors import ConflictError, NotFoundError
from .query_builder import UserListQuery

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

USER_ENTITY = "user"
NAME_INDEX = "fullName-index"
SUBMISSION_INDEXES = {
    "studentUid": "studentUid-submittedAt-index",
    "assignedTeacherUid": "assignedTeacherUid-submittedAt-index",
}


def _to_dynamo(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_to_dynamo(v) for v in value]
    return value


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value


def _equals_filter(equals: Mapping[str, str]):
    conditions = [Attr(name).eq(value) for name, value in equals.items()]
    if not conditions:
        return None
    return reduce(lambda left, right: left & right, conditions)


def _is_conditional_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class DynamoDBDocumentStore:
    def __init__(self, resource=None) -> None:
        self._dynamodb = resource or dynamodb_resource()
        self._users = self._dynamodb.Table(config.users_table())
        self._submissions = self._dynamodb.Table(config.submissions_table())
        self._credentials = self._dynamodb.Table(config.credentials_table())

    # helpers

    @staticmethod
    def _user_from_item(item: Mapping[str, Any]) -> Record:
        record = _from_dynamo(dict(item))
        record.pop("entity", None)
        return record

    @staticmethod
    def _paginate(operation, **kwargs) -> List[Record]:
        items: List[Record] = []
        while True:
            response = operation(**kwargs)
            items.extend(response.get("Items", []))
            if "LastEvaluatedKey" not in response:
                return items
            kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

    @staticmethod
    def _count(table, filter_expression=None) -> int:
        kwargs: Dict[str, Any] = {"Select": "COUNT"}
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        total = 0
        while True:
            response = table.scan(**kwargs)
            total += int(response.get("Count", 0))
            if "LastEvaluatedKey" not in response:
                return total
            kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

    def _update(self, table, key: Dict[str, str], changes: Mapping[str, Any], missing: str) -> Record:
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        assignments = []
        for i, (field, value) in enumerate(changes.items()):
            names[f"#f{i}"] = field
            values[f":v{i}"] = _to_dynamo(value)
            assignments.append(f"#f{i} = :v{i}")
        key_name = next(iter(key))
        names["#key"] = key_name
        try:
            response = table.update_item(
                Key=key,
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression="attribute_exists(#key)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise NotFoundError(missing) from e
            raise
        return response.get("Attributes", {})

    # users

    def get_user(self, uid: str) -> Optional[Record]:
        response = self._users.get_item(Key={"uid": uid})
        item = response.get("Item")
        return self._user_from_item(item) if item else None

    def put_user(self, record: Mapping[str, Any]) -> Record:
        item = _to_dynamo({**record, "entity": USER_ENTITY})
        self._users.put_item(Item=item)
        return self._user_from_item(item)

    def update_user(self, uid: str, changes: Mapping[str, Any]) -> Record:
        attributes = self._update(self._users, {"uid": uid}, changes, "User not found")
        return self._user_from_item(attributes)

    def list_users(self, query: UserListQuery) -> List[Record]:
        key_condition = Key("entity").eq(USER_ENTITY)
        if query.name_range is not None:
            key_condition = key_condition & Key(query.order_by).between(
                query.name_range.start, query.name_range.end
            )

        kwargs: Dict[str, Any] = {
            "IndexName": NAME_INDEX,
            "KeyConditionExpression": key_condition,
            "ScanIndexForward": True,
        }
        filter_expression = _equals_filter(query.equals)
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        else:
            kwargs["Limit"] = query.limit
        if query.start_after is not None:
            kwargs["ExclusiveStartKey"] = {
                "uid": query.start_after.uid,
                "entity": USER_ENTITY,
                query.order_by: query.start_after.full_name,
            }

        items: List[Record] = []
        while True:
            response = self._users.query(**kwargs)
            items.extend(response.get("Items", []))
            if len(items) >= query.limit or "LastEvaluatedKey" not in response:
                break
            kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

        return [self._user_from_item(item) for item in items[: query.limit]]

    def count_users(self, equals: Mapping[str, str]) -> int:
        return self._count(self._users, _equals_filter(equals))

    def field_values(self, field: str, equals: Mapping[str, str], limit: int) -> List[str]:
        condition = Attr(field).exists()
        extra = _equals_filter(equals)
        if extra is not None:
            condition = condition & extra

        values: List[str] = []
        kwargs: Dict[str, Any] = {
            "FilterExpression": condition,
            "ProjectionExpression": "#f",
            "ExpressionAttributeNames": {"#f": field},
        }
        # Scan order is arbitrary; sort only after the last page
        while True:
            response = self._users.scan(**kwargs)
            values.extend(item[field] for item in response.get("Items", []) if field in item)
            if "LastEvaluatedKey" not in response:
                break
            kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        return sorted(values)[:limit]

    # submissions

    def get_submission(self, submission_id: str) -> Optional[Record]:
        response = self._submissions.get_item(Key={"id": submission_id})
        item = response.get("Item")
        return _from_dynamo(dict(item)) if item else None

    def put_submission(self, record: Mapping[str, Any]) -> Record:
        item = _to_dynamo(dict(record))
        self._submissions.put_item(Item=item)
        return _from_dynamo(item)

    def update_submission(self, submission_id: str, changes: Mapping[str, Any]) -> Record:
        attributes = self._update(self._submissions, {"id": submission_id}, changes, "Submission not found")
        return _from_dynamo(dict(attributes))

    def list_submissions(self, field: str, value: str) -> List[Record]:
        index = SUBMISSION_INDEXES.get(field)
        if index is None:
            raise ValueError(f"No index for submissions.{field}")
        items = self._paginate(
            self._submissions.query,
            IndexName=index,
            KeyConditionExpression=Key(field).eq(value),
            ScanIndexForward=False,
        )
        return [_from_dynamo(dict(item)) for item in items]

    def recent_submissions(self, limit: int) -> List[Record]:
        items = [_from_dynamo(dict(item)) for item in self._paginate(self._submissions.scan)]
        items.sort(key=lambda r: r.get("submittedAt", ""), reverse=True)
        return items[:limit]

    def count_submissions(self, status: Optional[str] = None) -> int:
        condition = Attr("status").eq(status) if status is not None else None
        return self._count(self._submissions, condition)

    # credentials

    def get_credential(self, email: str) -> Optional[Record]:
        response = self._credentials.get_item(Key={"email": email.lower()})
        item = response.get("Item")
        return _from_dynamo(dict(item)) if item else None

    def create_credential(self, record: Mapping[str, Any]) -> Record:
        item = _to_dynamo({**record, "email": str(record["email"]).lower()})
        try:
            self._credentials.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(email)",
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                logger.info(f"Credential already exists for {item['email']}")
                raise ConflictError("Email already exists") from e
            raise
        return _from_dynamo(item)

    def update_credential(self, email: str, changes: Mapping[str, Any]) -> Record:
        attributes = self._update(self._credentials, {"email": email.lower()}, changes, "Credential not found")
        return _from_dynamo(dict(attributes))
