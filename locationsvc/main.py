"""Lambda entry point for the location resolver."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable

from .handler import AppSyncEvent, AppSyncHandler, ListLocationsResponse
from .repository import DynamoDBClient, DynamoDBRepository

logger = logging.getLogger(__name__)

TABLE_NAME_VARIABLE = "DYNAMODB_TABLE_NAME"


class ConfigurationError(RuntimeError):
    """Raised when the function cannot be set up from its environment."""


def get_env_var(key: str, default: str) -> str:
    """Return an environment variable, or the default when unset or empty."""
    return os.environ.get(key) or default


def initialize_handler(
    client_factory: Callable[[], DynamoDBClient] | None = None,
) -> AppSyncHandler:
    """Build a resolver backed by the table named in the environment."""
    table_name = os.environ.get(TABLE_NAME_VARIABLE, "")
    if not table_name:
        raise ConfigurationError(
            f"{TABLE_NAME_VARIABLE} environment variable is required"
        )
    if client_factory is None:
        raise ConfigurationError(
            "failed to load AWS config: no DynamoDB client factory configured"
        )
    try:
        client = client_factory()
    except Exception as exc:
        raise ConfigurationError(f"failed to load AWS config: {exc}") from exc
    return AppSyncHandler(DynamoDBRepository(client, table_name))


def lambda_handler(
    event: Any,
    context: Any = None,
    client_factory: Callable[[], DynamoDBClient] | None = None,
) -> Any:
    """Handle one invocation and return a JSON-ready result."""
    try:
        handler = initialize_handler(client_factory)
    except ConfigurationError as exc:
        logger.error("Failed to initialize handler: %s", exc)
        raise ConfigurationError(f"initialization error: {exc}") from exc

    if not isinstance(event, AppSyncEvent):
        event = AppSyncEvent.from_dict(event)
    logger.info("Processing AppSync event - Field: %s", event.field)

    try:
        result = handler.handle(event)
    except Exception as exc:
        logger.error("Failed to handle event: %s", exc)
        raise

    logger.info("Successfully processed event")
    if isinstance(result, ListLocationsResponse):
        return result.to_dict()
    return result