"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class EscalationConfig(BaseSettings):
    """Recency windows, soft-state TTLs and knowledge matching policy."""

    model_config = {"env_prefix": "FRONTDESK_ESCALATION_"}

    status_check_window_seconds: int = 600  # direct "did my supervisor answer?" queries
    ambient_window_seconds: int = 60  # re-check during normal messaging
    poll_window_seconds: int = 600
    webhook_window_seconds: int = 300
    response_cache_ttl_seconds: int = 300
    dedup_ledger_ttl_seconds: int = 1800
    cache_sweep_interval_seconds: int = 300
    ledger_sweep_interval_seconds: int = 300
    knowledge_match_ratio: float = 0.5
    knowledge_min_word_length: int = 4


class TimeoutConfig(BaseSettings):
    """Timeout worker schedule."""

    model_config = {"env_prefix": "FRONTDESK_TIMEOUT_"}

    interval_seconds: int = 300
    threshold_seconds: int = 1800
    secondary_enabled: bool = False
    secondary_interval_seconds: int = 60
    secondary_threshold_seconds: int = 300


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "FRONTDESK_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RealtimeConfig(BaseSettings):
    """Real-time channel configuration."""

    model_config = {"env_prefix": "FRONTDESK_REALTIME_"}

    session_prefix: str = "call-"


class ServerConfig(BaseSettings):
    """HTTP server bind address."""

    model_config = {"env_prefix": "FRONTDESK_SERVER_"}

    host: str = "0.0.0.0"
    port: int = 3000


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "FRONTDESK_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    store_backend: Literal["memory", "dynamodb"] = "memory"

    escalation: EscalationConfig = EscalationConfig()
    timeout: TimeoutConfig = TimeoutConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    realtime: RealtimeConfig = RealtimeConfig()
    server: ServerConfig = ServerConfig()
