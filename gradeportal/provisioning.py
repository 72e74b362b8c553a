"""
DynamoDB table definitions matching the layout the document store expects.

Used by ``scripts/create_tables.py`` for local (LocalStack) and fresh
environments. Existing tables are left untouched.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from botocore.exceptions import ClientError

from . import config
from .services.dynamodb_store import NAME_INDEX, SUBMISSION_INDEXES

logger = logging.getLogger(__name__)


def _gsi(name: str, partition: str, sort: str) -> Dict[str, Any]:
    return {
        "IndexName": name,
        "KeySchema": [
            {"AttributeName": partition, "KeyType": "HASH"},
            {"AttributeName": sort, "KeyType": "RANGE"},
        ],
        "Projection": {"ProjectionType": "ALL"},
    }


def table_definitions() -> List[Dict[str, Any]]:
    return [
        {
            "TableName": config.users_table(),
            "KeySchema": [{"AttributeName": "uid", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "uid", "AttributeType": "S"},
                {"AttributeName": "entity", "AttributeType": "S"},
                {"AttributeName": "fullName", "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [_gsi(NAME_INDEX, "entity", "fullName")],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": config.submissions_table(),
            "KeySchema": [{"AttributeName": "id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "id", "AttributeType": "S"},
                {"AttributeName": "studentUid", "AttributeType": "S"},
                {"AttributeName": "assignedTeacherUid", "AttributeType": "S"},
                {"AttributeName": "submittedAt", "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [
                _gsi(index, field, "submittedAt") for field, index in SUBMISSION_INDEXES.items()
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": config.credentials_table(),
            "KeySchema": [{"AttributeName": "email", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "email", "AttributeType": "S"}],
            "BillingMode": "PAY_PER_REQUEST",
        },
    ]


def ensure_tables(resource) -> List[str]:
    """Create any missing table and return the names that were created."""
    created = []
    for definition in table_definitions():
        name = definition["TableName"]
        try:
            table = resource.create_table(**definition)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ResourceInUseException":
                logger.info(f"Table {name} already exists")
                continue
            raise
        table.wait_until_exists()
        logger.info(f"Created table {name}")
        created.append(name)
    return created
