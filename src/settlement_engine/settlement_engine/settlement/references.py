"""Transaction reference checks and explorer links.

A reference is usable only when it is `0x` followed by exactly 64 hex digits.
Anything else is treated as absent and is never rendered as a link.
"""

from __future__ import annotations

import hashlib
import re
from typing import Optional

from ..core.constants import DEFAULT_EXPLORER_HOST
from ..core.enums import EntityType

_TX_REFERENCE_RE = re.compile(r"0x[0-9a-fA-F]{64}")


def is_valid_transaction_reference(value: object) -> bool:
    return isinstance(value, str) and _TX_REFERENCE_RE.fullmatch(value) is not None


def normalize_transaction_reference(value: object) -> Optional[str]:
    """Return the reference if usable, else None."""
    return value if is_valid_transaction_reference(value) else None


def explorer_link(reference: object, host: str = DEFAULT_EXPLORER_HOST) -> Optional[str]:
    ref = normalize_transaction_reference(reference)
    if ref is None:
        return None
    return f"https://{host}/tx/{ref}"


def idempotency_key(entity_type: EntityType, entity_id: object) -> str:
    """Deterministic key for settling one entity: sha256 of its identity."""
    raw = f"{EntityType(entity_type).value}:{entity_id}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()
