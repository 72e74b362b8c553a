#!/usr/bin/env python3
"""
Create the portal's DynamoDB tables.

Usage:
    # Against AWS, using AWS_REGION and the DDB_TABLE_* names:
    python scripts/create_tables.py

    # Against LocalStack:
    python scripts/create_tables.py --endpoint-url http://localhost:4566
"""
import argparse
import logging
import os
import sys
from pathlib import Path

# Add parent directory to path to import gradeportal
sys.path.insert(0, str(Path(__file__).parent.parent))

from gradeportal.aws_clients import dynamodb_resource  # noqa: E402
from gradeportal.logging_config import configure_logging  # noqa: E402
from gradeportal.provisioning import ensure_tables  # noqa: E402

logger = logging.getLogger("create_tables")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Create the users, submissions and credentials tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--endpoint-url", help="DynamoDB endpoint (e.g. LocalStack)")
    parser.add_argument("--region", help="AWS region (defaults to AWS_REGION)")
    args = parser.parse_args()

    if args.endpoint_url:
        os.environ["AWS_ENDPOINT_URL"] = args.endpoint_url
    if args.region:
        os.environ["AWS_REGION"] = args.region

    configure_logging()
    created = ensure_tables(dynamodb_resource())
    logger.info(f"Done. Created {len(created)} table(s): {', '.join(created) or 'none'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
