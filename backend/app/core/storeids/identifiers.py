"""Store identifier grammars.

A store is addressed either by its canonical id (the tenant UUID) or by the
id it carries in the external commerce platform (``store_<alnum>``). The two
grammars cannot overlap: a UUID always has hyphens at fixed positions and
never starts with ``store_``.

``classify`` answers which grammar a string matches. The ``parse_*`` helpers
turn a raw string into a typed ``CanonicalId`` / ``ExternalId`` once, so
lookups downstream never receive an unvalidated string.
"""
import re
import uuid
from dataclasses import dataclass
from enum import Enum

from app.core.storeids.errors import InvalidFormat

CANONICAL_ID_PATTERN = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)
EXTERNAL_ID_PATTERN = re.compile(r"store_[a-zA-Z0-9]+")

CANONICAL_EXAMPLE = "123e4567-e89b-12d3-a456-426614174000"
EXTERNAL_EXAMPLE = "store_01HQWE1234567890"


class IdFormat(str, Enum):
    CANONICAL = "canonical"
    EXTERNAL = "external"
    INVALID = "invalid"


@dataclass(frozen=True)
class CanonicalId:
    value: uuid.UUID

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ExternalId:
    value: str

    def __str__(self) -> str:
        return self.value


StoreIdentifier = CanonicalId | ExternalId


def is_canonical(raw: str) -> bool:
    return isinstance(raw, str) and CANONICAL_ID_PATTERN.fullmatch(raw) is not None


def is_external(raw: str) -> bool:
    return isinstance(raw, str) and EXTERNAL_ID_PATTERN.fullmatch(raw) is not None


def classify(raw: str) -> IdFormat:
    if is_canonical(raw):
        return IdFormat.CANONICAL
    if is_external(raw):
        return IdFormat.EXTERNAL
    return IdFormat.INVALID


def parse_canonical(raw: str | uuid.UUID | CanonicalId) -> CanonicalId:
    if isinstance(raw, CanonicalId):
        return raw
    if isinstance(raw, uuid.UUID):
        return CanonicalId(raw)
    if not is_canonical(raw):
        raise InvalidFormat("Invalid canonical store id format (must be a UUID)", expected=CANONICAL_EXAMPLE)
    return CanonicalId(uuid.UUID(raw))


def parse_external(raw: str | ExternalId) -> ExternalId:
    if isinstance(raw, ExternalId):
        return raw
    if not is_external(raw):
        raise InvalidFormat("Invalid external store id format (must be store_<alphanumeric>)", expected=EXTERNAL_EXAMPLE)
    return ExternalId(raw)


def parse_store_id(raw: str) -> StoreIdentifier:
    """Parse either accepted format; anything else raises ``InvalidFormat``."""
    fmt = classify(raw)
    if fmt is IdFormat.CANONICAL:
        return CanonicalId(uuid.UUID(raw))
    if fmt is IdFormat.EXTERNAL:
        return ExternalId(raw)
    raise InvalidFormat(
        "Invalid store id format",
        accepted=[f'UUID: "{CANONICAL_EXAMPLE}"', f'external: "{EXTERNAL_EXAMPLE}"'],
    )


def accepted_formats_message() -> str:
    return (
        "Store id must be either:\n"
        f'  - UUID format: "{CANONICAL_EXAMPLE}"\n'
        f'  - external format: "{EXTERNAL_EXAMPLE}"'
    )
