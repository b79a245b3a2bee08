"""
HeyReach lead store.

Keeps leads tagged as interested, keyed by normalized LinkedIn URL, until the
Clay enrichment callback for the same profile arrives.
"""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Optional

from loguru import logger

from services.normalize import normalize_profile_url
from services.ttl_store import TTLStore


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PendingLead:
    linkedin_url: str
    name: str = ""
    first_name: str = ""
    last_name: str = ""
    company: str = ""
    title: str = ""
    conversation: str = ""
    tag: str = "interested"
    tagged_at: str = field(default_factory=_utcnow_iso)
    added_at: Optional[str] = None


class LeadStore:
    """Pending leads awaiting enrichment. Each lead is consumed at most once."""

    def __init__(self, ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._store: TTLStore[PendingLead] = TTLStore(ttl=ttl, clock=clock, name="pending_leads")

    def add_pending_lead(self, lead: PendingLead) -> Optional[str]:
        """
        Store a lead under its normalized LinkedIn URL, overwriting any
        previous entry for the same profile.

        Returns:
            The normalized URL, or None if the lead has no usable URL
        """
        normalized_url = normalize_profile_url(lead.linkedin_url)
        if not normalized_url:
            return None

        self._store.put(normalized_url, replace(lead, linkedin_url=normalized_url, added_at=_utcnow_iso()))
        logger.info(f"Pending lead stored: {normalized_url}")
        return normalized_url

    def get_pending_lead(self, linkedin_url: Optional[str]) -> Optional[PendingLead]:
        """Return and remove the pending lead for ``linkedin_url``."""
        normalized_url = normalize_profile_url(linkedin_url)
        if not normalized_url:
            return None
        return self._store.pop(normalized_url)

    def has_pending_lead(self, linkedin_url: Optional[str]) -> bool:
        normalized_url = normalize_profile_url(linkedin_url)
        return normalized_url in self._store if normalized_url else False

    def pending_count(self) -> int:
        return len(self._store)
