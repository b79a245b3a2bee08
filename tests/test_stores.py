import os
import sys
from datetime import timedelta

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.lead_store import LeadStore, PendingLead
from services.meeting_store import BookingRecord, BookingStore, emails_align
from services.normalize import parse_timestamp
from services.ttl_store import TTLStore

DAY = 24 * 60 * 60


class FakeClock:
    """Settable stand-in for time.monotonic."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def booking(event_uuid="E1", **overrides) -> BookingRecord:
    fields = {
        "guest_email": "a@x.com",
        "guest_name": "Ada Guest",
        "meeting_url": "https://zoom.us/j/123?pwd=abc",
        "start_time": parse_timestamp("2024-01-15T10:00:00Z"),
        "end_time": parse_timestamp("2024-01-15T10:30:00Z"),
    }
    fields.update(overrides)
    return BookingRecord(event_uuid=event_uuid, **fields)


class TestTTLStore:

    def setup_method(self):
        self.clock = FakeClock()
        self.store = TTLStore(ttl=DAY, clock=self.clock)

    def test_entry_lives_until_ttl(self):
        self.store.put("a", 1)

        self.clock.now = DAY - 0.001
        assert self.store.get("a") == 1

        self.clock.now = DAY + 0.001
        assert self.store.get("a") is None

    def test_put_sweeps_expired_entries(self):
        self.store.put("old", 1)
        self.clock.now = DAY + 1
        self.store.put("new", 2)

        assert "old" not in self.store
        assert len(self.store) == 1

    def test_find_iterates_in_insertion_order(self):
        self.store.put("first", 10)
        self.store.put("second", 20)

        assert self.store.find(lambda v: v >= 10) == 10

    def test_reinsert_moves_to_end_and_restamps(self):
        self.store.put("a", 1)
        self.store.put("b", 2)
        self.clock.now = DAY - 1
        self.store.put("a", 3)

        assert self.store.values() == [2, 3]

        self.clock.now = DAY + 1
        assert self.store.get("b") is None
        assert self.store.get("a") == 3

    def test_pop_consumes_once(self):
        self.store.put("a", 1)

        assert self.store.pop("a") == 1
        assert self.store.pop("a") is None

    def test_delete(self):
        self.store.put("a", 1)

        assert self.store.delete("a") is True
        assert self.store.delete("a") is False

    def test_no_ttl_never_expires(self):
        store = TTLStore(ttl=None, clock=self.clock)
        store.put("a", 1)
        self.clock.now = 365 * DAY

        assert store.get("a") == 1

    def test_sweep_reports_removed_count(self):
        self.store.put("a", 1)
        self.store.put("b", 2)
        self.clock.now = DAY + 1

        assert self.store.sweep() == 2
        assert self.store.sweep() == 0


class TestBookingStore:
    """Booking-to-notetaker correlation."""

    def setup_method(self):
        self.clock = FakeClock()
        self.store = BookingStore(clock=self.clock)

    def test_zoom_booking_matches_notetaker_report(self):
        self.store.add_booking(booking("E1"))

        match = self.store.find_match(
            meeting_url="https://zoom.us/j/123",
            guest_email="A@X.com",
            start_time="2024-01-15T10:05:00Z",
        )

        assert match is not None
        assert match.event_uuid == "E1"

    def test_time_proximity_without_url_agreement(self):
        self.store.add_booking(booking("E1"))

        match = self.store.find_match(
            meeting_url="https://meet.google.com/other-room",
            guest_email="a@x.com",
            start_time="2024-01-15T10:05:00Z",
        )

        assert match.event_uuid == "E1"

    def test_time_window_is_inclusive_at_fifteen_minutes(self):
        self.store.add_booking(booking("E1", meeting_url=None))

        assert self.store.find_match(guest_email="a@x.com", start_time="2024-01-15T10:15:00Z") is not None
        assert self.store.find_match(guest_email="a@x.com", start_time="2024-01-15T09:44:59Z") is None

    def test_url_match_ignores_time(self):
        self.store.add_booking(booking("E1"))

        match = self.store.find_match(
            meeting_url="https://ZOOM.us/j/123/",
            guest_email="a@x.com",
            start_time="2024-01-16T18:00:00Z",
        )

        assert match.event_uuid == "E1"

    def test_refuses_email_only_match(self):
        self.store.add_booking(booking("E1"))

        assert self.store.find_match(guest_email="a@x.com") is None

    def test_guest_email_must_match(self):
        self.store.add_booking(booking("E1"))

        assert self.store.find_match(meeting_url="https://zoom.us/j/123", guest_email="b@x.com") is None
        assert self.store.find_match(meeting_url="https://zoom.us/j/123", guest_email=None) is None

    def test_first_inserted_candidate_wins(self):
        # E-url matches by URL only, E-time by start time only; whichever was stored first is returned
        url_only = booking("E-url", start_time=parse_timestamp("2024-01-10T08:00:00Z"))
        time_only = booking("E-time", meeting_url="https://zoom.us/j/999")
        candidate = {"meeting_url": "https://zoom.us/j/123", "guest_email": "a@x.com",
                     "start_time": "2024-01-15T10:02:00Z"}

        self.store.add_booking(url_only)
        self.store.add_booking(time_only)
        assert self.store.find_match(**candidate).event_uuid == "E-url"

        other = BookingStore(clock=self.clock)
        other.add_booking(time_only)
        other.add_booking(url_only)
        assert other.find_match(**candidate).event_uuid == "E-time"

    def test_bookings_expire_after_a_day(self):
        self.store.add_booking(booking("E1"))
        self.clock.now = DAY + 1

        assert self.store.find_match(meeting_url="https://zoom.us/j/123", guest_email="a@x.com") is None
        assert len(self.store) == 0

    def test_reinsert_same_event_overwrites(self):
        self.store.add_booking(booking("E1", guest_name="Old"))
        self.store.add_booking(booking("E1", guest_name="New"))

        assert len(self.store) == 1
        assert self.store.get_booking("E1").guest_name == "New"

    def test_created_at_stamped_from_clock(self):
        self.clock.now = 42.0
        stored = self.store.add_booking(booking("E1"))

        assert stored.created_at == 42.0


class TestEmailAlignment:

    def test_host_missing_on_either_side_is_wildcard(self):
        assert emails_align(booking(host_email=None), "a@x.com", "host@y.com")
        assert emails_align(booking(host_email="host@y.com"), "a@x.com", None)

    def test_host_compared_case_insensitively(self):
        assert emails_align(booking(host_email="Host@Y.com"), "A@x.com", "host@y.COM")

    def test_host_mismatch_blocks(self):
        assert not emails_align(booking(host_email="host@y.com"), "a@x.com", "other@y.com")

    def test_guest_mismatch_blocks(self):
        assert not emails_align(booking(), "b@x.com", None)


class TestLeadStore:
    """Pending HeyReach leads keyed by LinkedIn URL."""

    def setup_method(self):
        self.store = LeadStore()

    def test_consume_once(self):
        self.store.add_pending_lead(PendingLead(linkedin_url="https://www.linkedin.com/in/johndoe", name="John"))

        assert self.store.get_pending_lead("https://www.linkedin.com/in/johndoe").name == "John"
        assert self.store.get_pending_lead("https://www.linkedin.com/in/johndoe") is None

    def test_url_variants_resolve_to_same_lead(self):
        key = self.store.add_pending_lead(PendingLead(linkedin_url="https://www.linkedin.com/in/JohnDoe?trk=x"))

        assert key == "https://www.linkedin.com/in/johndoe"
        lead = self.store.get_pending_lead("linkedin.com/in/johndoe/")
        assert lead is not None
        assert lead.linkedin_url == "https://www.linkedin.com/in/johndoe"
        assert lead.added_at is not None

    def test_missing_url_is_not_stored(self):
        assert self.store.add_pending_lead(PendingLead(linkedin_url="")) is None
        assert self.store.pending_count() == 0

    def test_insert_overwrites(self):
        self.store.add_pending_lead(PendingLead(linkedin_url="linkedin.com/in/jane", conversation="first"))
        self.store.add_pending_lead(PendingLead(linkedin_url="https://www.linkedin.com/in/jane/", conversation="second"))

        assert self.store.pending_count() == 1
        assert self.store.get_pending_lead("linkedin.com/in/jane").conversation == "second"

    def test_has_pending_lead_does_not_consume(self):
        self.store.add_pending_lead(PendingLead(linkedin_url="linkedin.com/in/jane"))

        assert self.store.has_pending_lead("https://www.linkedin.com/in/Jane")
        assert self.store.has_pending_lead("https://www.linkedin.com/in/Jane")
        assert not self.store.has_pending_lead(None)

    def test_optional_ttl(self):
        clock = FakeClock()
        store = LeadStore(ttl=timedelta(hours=1).total_seconds(), clock=clock)
        store.add_pending_lead(PendingLead(linkedin_url="linkedin.com/in/jane"))
        clock.now = 3601

        assert store.get_pending_lead("linkedin.com/in/jane") is None
