"""Helpers for identifiers received in paths and payloads."""

from uuid import UUID

from app.exceptions.base import NotFoundError


def parse_uuid(value, error_cls: type[NotFoundError] = NotFoundError) -> UUID:
    """Parse ``value`` as a UUID; a malformed id is reported as a missing entity."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError) as e:
        raise error_cls() from e
