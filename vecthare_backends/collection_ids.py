"""Collection identifier codec for multitenant stores.

A logical collection id names one tenant inside a shared physical collection.
Two textual forms are understood:

* ``vh:<type>:<sourceId>`` (current); ``sourceId`` may contain ``:``.
* ``vecthare_<type>_<sourceId>`` (legacy); ``sourceId`` may contain ``_``.

Anything else decodes to a chat tenant whose source id is the whole input.
Decoding never fails.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

logger = logging.getLogger(__name__)

CURRENT_PREFIX = "vh"
CURRENT_DELIMITER = ":"
LEGACY_PREFIX = "vecthare"
LEGACY_DELIMITER = "_"
FALLBACK_TYPE = "chat"


class Tenant(NamedTuple):
    """Decoded ``(type, sourceId)`` pair."""

    type: str
    source_id: str

    def as_filters(self) -> dict[str, str]:
        """Payload-level filter attached to multitenant requests."""
        return {"type": self.type, "sourceId": self.source_id}


def encode_collection_id(tenant_type: str, source_id: str) -> str:
    """Build a current-format collection id."""
    if not tenant_type or CURRENT_DELIMITER in tenant_type:
        raise ValueError(f"Invalid tenant type '{tenant_type}'.")
    return CURRENT_DELIMITER.join((CURRENT_PREFIX, tenant_type, source_id))


def decode_collection_id(collection_id: str) -> Tenant:
    """Split a collection id into its tenant pair."""
    if not collection_id or not isinstance(collection_id, str):
        return Tenant(FALLBACK_TYPE, collection_id or "")

    parts = collection_id.split(CURRENT_DELIMITER, 2)
    if len(parts) == 3 and parts[0] == CURRENT_PREFIX:
        return Tenant(parts[1], parts[2])

    legacy = collection_id.split(LEGACY_DELIMITER, 2)
    if len(legacy) == 3 and legacy[0] == LEGACY_PREFIX:
        logger.warning("Legacy collection id format detected: %s", collection_id)
        return Tenant(legacy[1], legacy[2])

    logger.warning("Unknown collection id format, treating as chat: %s", collection_id)
    return Tenant(FALLBACK_TYPE, collection_id)
