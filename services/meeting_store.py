"""
In-memory store of Calendly bookings used to recognise the same meeting when
the notetaker (Fathom) reports it later.

Not persisted; intended for short-lived correlation within ~24h.
"""

import time
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from loguru import logger

from services.normalize import normalize_email, normalize_url, parse_timestamp
from services.ttl_store import TTLStore

BOOKING_TTL = 24 * 60 * 60
MATCH_WINDOW = timedelta(minutes=15)


@dataclass(frozen=True)
class BookingRecord:
    """A scheduled meeting observed via a Calendly ``invitee.created`` webhook."""
    event_uuid: str
    guest_email: str
    guest_name: str = ""
    meeting_url: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    host_email: Optional[str] = None
    created_at: Optional[float] = None


def emails_align(record: BookingRecord, guest_email: Optional[str], host_email: Optional[str]) -> bool:
    """
    Guest emails must both be present and equal (case-insensitive).
    Host emails only have to agree when both sides carry one.
    """
    record_guest = normalize_email(record.guest_email)
    guest = normalize_email(guest_email)
    if not record_guest or not guest or record_guest != guest:
        return False

    record_host = normalize_email(record.host_email)
    host = normalize_email(host_email)
    return not record_host or not host or record_host == host


class BookingStore:
    """Bookings keyed by Calendly event UUID, matched by URL / start time / email."""

    def __init__(
        self,
        ttl: Optional[float] = BOOKING_TTL,
        clock: Callable[[], float] = time.monotonic,
        window: timedelta = MATCH_WINDOW,
    ):
        self.window = window
        self._store: TTLStore[BookingRecord] = TTLStore(ttl=ttl, clock=clock, name="bookings")

    def add_booking(self, record: BookingRecord) -> BookingRecord:
        """Store a booking, replacing any earlier record with the same event UUID."""
        stamped = replace(record, created_at=self._store.now())
        self._store.put(record.event_uuid, stamped)
        logger.info(f"Stored booking {record.event_uuid} for {record.guest_email}")
        return stamped

    def get_booking(self, event_uuid: str) -> Optional[BookingRecord]:
        return self._store.get(event_uuid)

    def find_match(
        self,
        meeting_url: Optional[str] = None,
        guest_email: Optional[str] = None,
        host_email: Optional[str] = None,
        start_time: Union[str, datetime, None] = None,
    ) -> Optional[BookingRecord]:
        """
        Find the booking a notetaker recording belongs to.

        Bookings are scanned oldest first and the first one that qualifies wins:
        either the meeting URLs normalize identically, or the start times are
        within the match window. Both rules also require the emails to align.
        Returns None when the candidate has neither a URL nor a start time.
        """
        if not meeting_url and not start_time:
            return None

        url = normalize_url(meeting_url)
        start = parse_timestamp(start_time)

        def matches(record: BookingRecord) -> bool:
            if url and record.meeting_url and normalize_url(record.meeting_url) == url:
                if emails_align(record, guest_email, host_email):
                    return True

            if start and record.start_time:
                if abs(record.start_time - start) <= self.window and emails_align(record, guest_email, host_email):
                    return True

            return False

        return self._store.find(matches)

    def __len__(self) -> int:
        return len(self._store)
