"""Custom SQLAlchemy types for cross-database compatibility"""
from sqlalchemy import TypeDecorator, String
import uuid


def generate_uuid() -> str:
    """Generate a UUID string"""
    return str(uuid.uuid4())


def normalize_uuid(value) -> str:
    """
    Canonical lowercase hyphenated form of a UUID given as str or uuid.UUID.

    Hall ticket codes are derived from these strings, so every id must go
    through here before hashing or comparing.
    """
    if isinstance(value, uuid.UUID):
        return str(value)
    return str(uuid.UUID(str(value)))


class GUID(TypeDecorator):
    """UUID stored as VARCHAR(36) so prefix LIKE lookups work on every backend"""
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        try:
            return normalize_uuid(value)
        except ValueError:
            # LIKE patterns and partial ids pass through untouched
            return str(value)

    def process_result_value(self, value, dialect):
        if value is not None:
            return str(value)
        return value
