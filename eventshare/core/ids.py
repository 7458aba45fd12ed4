import uuid

from eventshare.core.exceptions import NotFoundError


def parse_id(value, entity: str = "Resource") -> uuid.UUID:
    """Parse a path/body identifier, treating malformed ids as missing entities."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise NotFoundError(f"{entity} not found with id of {value}")
