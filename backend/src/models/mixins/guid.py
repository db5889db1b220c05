"""
GUID mixin for SQLAlchemy models.

Provides UUID-based Global Unique Identifiers for entities exposed through
the API and referenced from notifications. Uses UUIDv7 (time-ordered) with
Crockford's Base32 encoding for URL-safe identifiers.

GUID Format: {prefix}_{base32_uuid}
Examples:
    - tsk_01hgw2bbg0000000000000000 (Task)
    - ntf_01hgw2bbg0000000000000001 (Notification)
    - sub_01hgw2bbg0000000000000002 (PushSubscription)
"""

import uuid as uuid_module
from typing import ClassVar

import base32_crockford
from sqlalchemy import Column, TypeDecorator, LargeBinary
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from uuid_extensions import uuid7


GUID_ENCODED_LENGTH = 26


class UUIDType(TypeDecorator):
    """
    Platform-independent UUID type.

    Native UUID on PostgreSQL, 16-byte LargeBinary on SQLite.
    Always presents as a Python UUID object.
    """

    impl = LargeBinary
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(LargeBinary(16))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid_module.UUID):
            value = (
                uuid_module.UUID(bytes=value)
                if isinstance(value, bytes)
                else uuid_module.UUID(str(value))
            )
        return value if dialect.name == 'postgresql' else value.bytes

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid_module.UUID):
            return value
        if isinstance(value, bytes):
            return uuid_module.UUID(bytes=value)
        return uuid_module.UUID(str(value))


def encode_guid(prefix: str, value: uuid_module.UUID) -> str:
    """Encode a UUID as a prefixed, lowercase Crockford Base32 GUID."""
    encoded = base32_crockford.encode(value.int).zfill(GUID_ENCODED_LENGTH)
    return f"{prefix}_{encoded.lower()}"


class GuidMixin:
    """
    Mixin providing GUID support for entities.

    Adds:
    - uuid: UUID column (UUIDv7, time-ordered)
    - guid: Property returning the prefixed Base32 string
    - parse_guid: Class method decoding a GUID back to its UUID

    Usage:
        class Notification(Base, GuidMixin):
            GUID_PREFIX = "ntf"
    """

    # Subclasses must define their 3-character prefix
    GUID_PREFIX: ClassVar[str]

    uuid = Column(
        UUIDType(),
        nullable=False,
        unique=True,
        index=True,
        default=uuid7,
    )

    @property
    def guid(self) -> str:
        """
        Get the full GUID with prefix, or None before the row is flushed.

        Example: ntf_01hgw2bbg0000000000000000
        """
        if self.uuid is None:
            return None
        value = self.uuid
        if isinstance(value, bytes):
            value = uuid_module.UUID(bytes=value)
        return encode_guid(self.GUID_PREFIX, value)

    @classmethod
    def parse_guid(cls, guid: str) -> uuid_module.UUID:
        """
        Parse a GUID string to a UUID object.

        Args:
            guid: GUID string (e.g., "ntf_01hgw2bbg...")

        Returns:
            UUID object

        Raises:
            ValueError: If the GUID is empty, has the wrong prefix or a bad encoding
        """
        if not guid:
            raise ValueError("GUID cannot be empty")

        expected_prefix = f"{cls.GUID_PREFIX}_"
        if not guid.lower().startswith(expected_prefix):
            raise ValueError(
                f"Invalid prefix for {cls.__name__}. "
                f"Expected '{cls.GUID_PREFIX}', got '{guid.split('_')[0]}'"
            )

        encoded_part = guid[len(expected_prefix):]
        if len(encoded_part) != GUID_ENCODED_LENGTH:
            raise ValueError(
                f"Invalid GUID length. Expected {GUID_ENCODED_LENGTH} characters "
                f"after prefix, got {len(encoded_part)}"
            )

        try:
            uuid_int = base32_crockford.decode(encoded_part.upper())
            return uuid_module.UUID(bytes=uuid_int.to_bytes(16, "big"))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Invalid GUID encoding: {e}")
