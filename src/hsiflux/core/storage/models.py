"""Data models for the baseline persistence layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

BASELINE_KINDS = ("wearable", "behavior")


@dataclass
class StoredBaseline:
    """One owner's persisted baseline store of a given kind.

    ``state`` is the store's versioned JSON object and is encrypted at rest.
    ``store_version`` and ``sample_count`` stay unencrypted for listing.
    """

    owner_id: str
    kind: str  # 'wearable' | 'behavior'
    state: dict[str, Any] = field(default_factory=dict)
    store_version: int = 0
    sample_count: int = 0
    created_at: str = ""
    updated_at: str = ""
