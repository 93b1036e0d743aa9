"""Create the FrontDesk DynamoDB tables and seed curated knowledge entries.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any

import boto3

from frontdesk.models.help_request import KnowledgeEntry, KnowledgeSource
from frontdesk.persistence.dynamodb_backend import (
    HELP_REQUESTS_TABLE,
    KNOWLEDGE_TABLE,
    REQUESTER_INDEX,
    STATUS_INDEX,
    DynamoDBKnowledgeStore,
)

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": HELP_REQUESTS_TABLE,
        "attributes": ["status", "created_at", "requester_id", "resolved_at"],
        "indexes": [
            (STATUS_INDEX, "status", "created_at"),
            (REQUESTER_INDEX, "requester_id", "resolved_at"),
        ],
    },
    {"name": KNOWLEDGE_TABLE, "attributes": [], "indexes": []},
]


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create the help request and knowledge tables. Skips existing tables."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        kwargs: dict[str, Any] = {
            "TableName": table_name,
            "KeySchema": [
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": name, "AttributeType": "S"}
                for name in ["PK", "SK", *defn["attributes"]]
            ],
            "BillingMode": "PAY_PER_REQUEST",
        }
        if defn["indexes"]:
            kwargs["GlobalSecondaryIndexes"] = [
                {
                    "IndexName": index_name,
                    "KeySchema": [
                        {"AttributeName": hash_key, "KeyType": "HASH"},
                        {"AttributeName": range_key, "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                }
                for index_name, hash_key, range_key in defn["indexes"]
            ]
        client.create_table(**kwargs)
        print(f"  Created table {table_name}")


def load_seed_entries(path: Path | None = None) -> list[KnowledgeEntry]:
    seed_path = path or Path(__file__).resolve().parent.parent / "config" / "knowledge_seed.json"
    data = json.loads(seed_path.read_text())
    return [
        KnowledgeEntry(question=e["question"], answer=e["answer"], source=KnowledgeSource.MANUAL)
        for e in data["entries"]
    ]


async def seed_knowledge(store: DynamoDBKnowledgeStore, entries: list[KnowledgeEntry]) -> int:
    """Add curated entries whose question is not already in the knowledge base."""
    known = {e.question.strip().lower() for e in await store.list_entries()}
    added = 0
    for entry in entries:
        if entry.question.strip().lower() in known:
            continue
        await store.add(entry)
        added += 1
    print(f"  Seeded {added} knowledge entries")
    return added


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed DynamoDB tables for FrontDesk")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    print("Seeding data...")
    store = DynamoDBKnowledgeStore(
        table_suffix=args.table_suffix, region=args.region, endpoint_url=args.endpoint_url,
    )
    asyncio.run(seed_knowledge(store, load_seed_entries()))

    print("Done!")


if __name__ == "__main__":
    main()
