"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from frontdesk.core.config import AppSettings
from frontdesk.core.protocols import IHelpRequestStore, IKnowledgeStore
from frontdesk.persistence.dynamodb_backend import DynamoDBHelpRequestStore, DynamoDBKnowledgeStore
from frontdesk.persistence.memory_backend import MemoryHelpRequestStore, MemoryKnowledgeStore


def create_persistence(settings: AppSettings | None = None) -> tuple[IHelpRequestStore, IKnowledgeStore]:
    """Create wired-up persistence backends from application settings.

    Returns:
        Tuple of (help_request_store, knowledge_store).
    """
    if settings is None:
        settings = AppSettings()

    if settings.store_backend == "memory":
        return MemoryHelpRequestStore(), MemoryKnowledgeStore()

    help_requests = DynamoDBHelpRequestStore(
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
    )
    knowledge = DynamoDBKnowledgeStore(
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
    )
    return help_requests, knowledge
