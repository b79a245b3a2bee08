from loguru import logger

from services.lead_store import PendingLead
from services.meeting_store import BookingRecord
from services.normalize import parse_timestamp
from workflows.state import LeadState, MeetingState


async def store_booking(state: MeetingState, ctx) -> MeetingState:
    """Remember the booking so a later Fathom recording of the same call can be matched."""
    ctx.bookings.add_booking(BookingRecord(
        event_uuid=state["event_uuid"],
        guest_email=state["guest_email"],
        guest_name=state.get("guest_name", ""),
        meeting_url=state.get("meeting_url"),
        start_time=parse_timestamp(state.get("start_time")),
        end_time=parse_timestamp(state.get("end_time")),
        host_email=state.get("host_email"),
    ))
    return state


async def correlate_booking(state: MeetingState, ctx) -> MeetingState:
    """
    Match a Fathom recording to a stored Calendly booking.

    On a match the booking's guest identity wins over what the notetaker
    guessed. No match is normal and leaves the state untouched.
    """
    booking = ctx.bookings.find_match(
        meeting_url=state.get("meeting_url"),
        guest_email=state.get("guest_email"),
        host_email=state.get("host_email"),
        start_time=state.get("start_time"),
    )

    if not booking:
        logger.info(f"No Calendly booking matched recording for {state.get('guest_email')}")
        return state

    logger.info(f"Recording matched Calendly booking {booking.event_uuid}")
    state["matched_booking"] = booking.event_uuid
    state["event_uuid"] = booking.event_uuid
    state["guest_email"] = booking.guest_email
    if booking.guest_name:
        state["guest_name"] = booking.guest_name
    return state


async def stash_lead(state: LeadState, ctx) -> LeadState:
    """Park the HeyReach lead until Clay reports the enrichment for the same profile."""
    normalized_url = ctx.leads.add_pending_lead(PendingLead(**state["lead"]))
    state["linkedin_url"] = normalized_url
    state["status"] = "stored"
    logger.info(f"Lead awaiting Clay enrichment: {normalized_url}")
    return state
