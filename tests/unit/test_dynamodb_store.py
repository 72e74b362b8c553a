"""
Tests for the DynamoDB document store (tables mocked)
"""
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from gradeportal.errors import ConflictError, NotFoundError
from gradeportal.services.dynamodb_store import NAME_INDEX, DynamoDBDocumentStore, _from_dynamo, _to_dynamo
from gradeportal.services.query_builder import Cursor, UserListFilters, build_user_query


def _conditional_failure(operation="PutItem"):
    return ClientError(
        {"Error": {"Code": "ConditionalCheckFailedException", "Message": "The conditional request failed"}},
        operation,
    )


@pytest.fixture
def tables():
    users, submissions, credentials = MagicMock(), MagicMock(), MagicMock()
    resource = MagicMock()
    resource.Table.side_effect = lambda name: {
        "portal_users": users,
        "portal_submissions": submissions,
        "portal_credentials": credentials,
    }[name]
    store = DynamoDBDocumentStore(resource=resource)
    return store, users, submissions, credentials


class TestConversion:
    def test_floats_become_decimals_and_none_is_dropped(self):
        assert _to_dynamo({"grade": 87.5, "feedback": None, "ok": True}) == {
            "grade": Decimal("87.5"),
            "ok": True,
        }

    def test_decimals_come_back_as_numbers(self):
        assert _from_dynamo({"a": Decimal("90"), "b": Decimal("72.25")}) == {"a": 90, "b": 72.25}


class TestUsers:
    def test_put_user_tags_entity_and_hides_it(self, tables):
        store, users, _, _ = tables
        record = store.put_user({"uid": "u1", "fullName": "Ada"})
        item = users.put_item.call_args.kwargs["Item"]
        assert item["entity"] == "user"
        assert "entity" not in record

    def test_get_missing_user(self, tables):
        store, users, _, _ = tables
        users.get_item.return_value = {}
        assert store.get_user("u1") is None

    def test_update_missing_user_raises_not_found(self, tables):
        store, users, _, _ = tables
        users.update_item.side_effect = _conditional_failure("UpdateItem")
        with pytest.raises(NotFoundError):
            store.update_user("u1", {"fullName": "X"})
        kwargs = users.update_item.call_args.kwargs
        assert kwargs["ConditionExpression"] == "attribute_exists(#key)"
        assert kwargs["ExpressionAttributeNames"]["#key"] == "uid"

    def test_unfiltered_list_queries_name_index_with_limit(self, tables):
        store, users, _, _ = tables
        users.query.return_value = {"Items": [{"uid": "u1", "fullName": "Ada", "entity": "user"}]}

        result = store.list_users(build_user_query(UserListFilters(), page_size=5))

        kwargs = users.query.call_args.kwargs
        assert kwargs["IndexName"] == NAME_INDEX
        assert kwargs["Limit"] == 5
        assert kwargs["ScanIndexForward"] is True
        assert "FilterExpression" not in kwargs
        assert result == [{"uid": "u1", "fullName": "Ada"}]

    def test_cursor_becomes_exclusive_start_key(self, tables):
        store, users, _, _ = tables
        users.query.return_value = {"Items": []}
        query = build_user_query(UserListFilters(), Cursor(uid="u9", full_name="Zed"), page_size=5)

        store.list_users(query)

        assert users.query.call_args.kwargs["ExclusiveStartKey"] == {
            "uid": "u9",
            "entity": "user",
            "fullName": "Zed",
        }

    def test_filtered_list_follows_pages_until_full(self, tables):
        store, users, _, _ = tables
        users.query.side_effect = [
            {"Items": [{"uid": "a", "fullName": "A"}], "LastEvaluatedKey": {"uid": "a"}},
            {"Items": [{"uid": "b", "fullName": "B"}, {"uid": "c", "fullName": "C"}], "LastEvaluatedKey": {"uid": "c"}},
            {"Items": [{"uid": "d", "fullName": "D"}]},
        ]

        result = store.list_users(build_user_query(UserListFilters(role="student"), page_size=2))

        assert [r["uid"] for r in result] == ["a", "b"]
        assert users.query.call_count == 2
        first_call = users.query.call_args_list[0].kwargs
        assert "Limit" not in first_call
        assert "FilterExpression" in first_call

    def test_count_users_follows_pagination(self, tables):
        store, users, _, _ = tables
        users.scan.side_effect = [{"Count": 3, "LastEvaluatedKey": {"uid": "x"}}, {"Count": 2}]
        assert store.count_users({"role": "student"}) == 5
        assert users.scan.call_args_list[0].kwargs["Select"] == "COUNT"

    def test_search_becomes_name_prefix_key_range(self, tables):
        store, users, _, _ = tables
        users.query.return_value = {"Items": []}
        query = build_user_query(UserListFilters(search="Ja"), Cursor(uid="u4", full_name="Jack"), page_size=5)

        store.list_users(query)

        kwargs = users.query.call_args.kwargs
        assert kwargs["KeyConditionExpression"] == Key("entity").eq("user") & Key("fullName").between(
            "Ja", "Ja\uf8ff"
        )
        assert kwargs["ExclusiveStartKey"] == {"uid": "u4", "entity": "user", "fullName": "Jack"}
        assert kwargs["Limit"] == 5

    def test_field_values_reads_every_page_before_trimming(self, tables):
        store, users, _, _ = tables
        users.scan.side_effect = [
            {"Items": [{"department": "Physics"}, {"department": "Math"}], "LastEvaluatedKey": {"uid": "x"}},
            {"Items": [{"department": "Biology"}]},
        ]

        assert store.field_values("department", {}, limit=2) == ["Biology", "Math"]
        assert users.scan.call_count == 2


class TestSubmissions:
    def test_list_uses_index_newest_first(self, tables):
        store, _, submissions, _ = tables
        submissions.query.return_value = {"Items": [{"id": "s1", "grade": Decimal("80")}]}

        result = store.list_submissions("assignedTeacherUid", "t1")

        kwargs = submissions.query.call_args.kwargs
        assert kwargs["IndexName"] == "assignedTeacherUid-submittedAt-index"
        assert kwargs["ScanIndexForward"] is False
        assert result == [{"id": "s1", "grade": 80}]

    def test_list_by_unindexed_field_rejected(self, tables):
        store, _, _, _ = tables
        with pytest.raises(ValueError):
            store.list_submissions("title", "x")

    def test_update_converts_grade(self, tables):
        store, _, submissions, _ = tables
        submissions.update_item.return_value = {"Attributes": {"id": "s1", "grade": Decimal("92.5")}}

        updated = store.update_submission("s1", {"grade": 92.5, "status": "graded"})

        values = submissions.update_item.call_args.kwargs["ExpressionAttributeValues"]
        assert Decimal("92.5") in values.values()
        assert updated["grade"] == 92.5


class TestCredentials:
    def test_create_is_conditional_and_lowercases(self, tables):
        store, _, _, credentials = tables
        created = store.create_credential({"email": "A@School.edu", "uid": "u1"})

        kwargs = credentials.put_item.call_args.kwargs
        assert kwargs["ConditionExpression"] == "attribute_not_exists(email)"
        assert kwargs["Item"]["email"] == "a@school.edu"
        assert created["email"] == "a@school.edu"

    def test_existing_email_conflicts(self, tables):
        store, _, _, credentials = tables
        credentials.put_item.side_effect = _conditional_failure()
        with pytest.raises(ConflictError):
            store.create_credential({"email": "a@school.edu", "uid": "u1"})

    def test_other_client_errors_propagate(self, tables):
        store, _, _, credentials = tables
        credentials.put_item.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}}, "PutItem"
        )
        with pytest.raises(ClientError):
            store.create_credential({"email": "a@school.edu", "uid": "u1"})

    def test_update_credential_is_conditional(self, tables):
        store, _, _, credentials = tables
        credentials.update_item.return_value = {"Attributes": {"email": "a@school.edu", "passwordHash": "h"}}

        updated = store.update_credential("A@School.edu", {"passwordHash": "h"})

        kwargs = credentials.update_item.call_args.kwargs
        assert kwargs["Key"] == {"email": "a@school.edu"}
        assert kwargs["ConditionExpression"] == "attribute_exists(#key)"
        assert updated["passwordHash"] == "h"

    def test_update_missing_credential(self, tables):
        store, _, _, credentials = tables
        credentials.update_item.side_effect = _conditional_failure("UpdateItem")
        with pytest.raises(NotFoundError):
            store.update_credential("a@school.edu", {"passwordHash": "h"})
