from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from services.errors import MalformedPayload
from services.normalize import normalize_email, normalize_profile_url
from workflows.state import LeadState, MeetingState

# Clay column names vary per table; these are the spellings seen in practice.
CLAY_LINKEDIN_FIELDS = ["linkedin_url", "linkedinUrl", "linkedin", "LinkedIn", "profile_url", "LinkedIn URL"]
CLAY_EMAIL_FIELDS = ["email", "Email", "work_email", "personal_email", "Work Email", "Personal Email", "email_address"]
CLAY_PHONE_FIELDS = [
    "phone", "Phone", "phone_number", "mobile", "Mobile", "Phone Number",
    "Mobile Number", "Mobile Phone", "direct_phone", "Phone Clean",
]
CLAY_NAME_FIELDS = ["name", "full_name", "Full Name"]


def _first(data: Dict[str, Any], keys: List[str]) -> Optional[Any]:
    for key in keys:
        if data.get(key):
            return data[key]
    return None


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _object(value: Any, what: str) -> Dict[str, Any]:
    """A nested payload object: missing is empty, anything but a JSON object is malformed."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedPayload(f"{what} is not an object: {type(value).__name__}")
    return value


def parse_invitee_created(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize the ``payload`` object of a Calendly ``invitee.created`` event."""
    scheduled = _object(payload.get("scheduled_event"), "scheduled_event")
    event_uri = _text(scheduled.get("uri"))
    location = scheduled.get("location") or {}
    memberships = scheduled.get("event_memberships") or [{}]
    host = memberships[0] if isinstance(memberships, list) and isinstance(memberships[0], dict) else {}

    return {
        "event_uuid": event_uri.rstrip("/").split("/")[-1] or None,
        "guest_email": normalize_email(payload.get("email")),
        "guest_name": payload.get("name") or "",
        "host_email": normalize_email(host.get("user_email")),
        "meeting_url": location.get("join_url") if isinstance(location, dict) else None,
        "start_time": scheduled.get("start_time"),
        "end_time": scheduled.get("end_time"),
    }


def extract_lead_data(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a HeyReach "lead tagged" payload.

    The lead may sit under ``lead``, ``contact`` or the top level, and messages
    under ``messages``, ``conversation`` or the lead itself. The conversation
    is flattened to ``[timestamp] sender: text`` paragraphs.
    """
    lead = _object(payload.get("lead") or payload.get("contact") or payload, "lead")
    messages = payload.get("messages") or payload.get("conversation") or lead.get("messages") or []
    name = (
        lead.get("name")
        or lead.get("full_name")
        or f"{lead.get('first_name') or ''} {lead.get('last_name') or ''}".strip()
    )

    if isinstance(messages, list):
        lines = []
        for msg in messages:
            if not isinstance(msg, dict):
                logger.warning(f"Skipping HeyReach message that is not an object: {msg!r}")
                continue
            sender = msg.get("sender") or msg.get("from") or ("Me" if msg.get("is_outbound") else name or "Lead")
            timestamp = msg.get("sent_at") or msg.get("timestamp") or msg.get("created_at") or ""
            text = msg.get("text") or msg.get("content") or msg.get("body") or ""
            lines.append(f"[{timestamp}] {sender}: {text}")
        conversation = "\n\n".join(lines)
    elif isinstance(messages, str):
        conversation = messages
    else:
        conversation = ""

    linkedin_url = (
        lead.get("linkedin_url")
        or lead.get("linkedinUrl")
        or lead.get("linkedin")
        or lead.get("profile_url")
        or payload.get("linkedin_url")
        or payload.get("linkedinUrl")
    )

    return {
        "linkedin_url": normalize_profile_url(linkedin_url),
        "name": name,
        "first_name": lead.get("first_name") or lead.get("firstName") or "",
        "last_name": lead.get("last_name") or lead.get("lastName") or "",
        "company": lead.get("company") or lead.get("company_name") or lead.get("organization") or "",
        "title": lead.get("title") or lead.get("job_title") or lead.get("position") or "",
        "conversation": conversation,
        "tagged_at": payload.get("tagged_at") or payload.get("timestamp") or datetime.now(timezone.utc).isoformat(),
        "tag": payload.get("tag") or payload.get("label") or "interested",
    }


def extract_clay_data(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize a Clay enrichment row (nested under data/row/record, or top level)."""
    data = _object(payload.get("data") or payload.get("row") or payload.get("record") or payload, "data")
    first_name = data.get("first_name") or data.get("firstName") or ""
    last_name = data.get("last_name") or data.get("lastName") or ""

    email = _first(data, CLAY_EMAIL_FIELDS)
    phone = _first(data, CLAY_PHONE_FIELDS)

    return {
        "linkedin_url": normalize_profile_url(_first(data, CLAY_LINKEDIN_FIELDS) or payload.get("linkedin_url")),
        "email": normalize_email(email),
        "phone": _text(phone) or None,
        "name": _first(data, CLAY_NAME_FIELDS) or f"{first_name} {last_name}".strip(),
        "first_name": first_name,
        "last_name": last_name,
        "company": data.get("company") or data.get("Company") or data.get("company_name") or "",
        "title": data.get("title") or data.get("Title") or data.get("job_title") or "",
    }


async def capture_booking(state: MeetingState, ctx) -> MeetingState:
    """Validate a Calendly webhook; anything other than invitee.created is skipped."""
    raw = state.get("raw", {})
    event = raw.get("event")
    logger.info(f"Processing Calendly webhook: {event}")

    if event != "invitee.created":
        logger.info(f"Skipping non-invitee event: {event}")
        state["status"] = "skipped"
        return state

    booking = parse_invitee_created(_object(raw.get("payload"), "payload"))
    if not booking["event_uuid"] or not booking["guest_email"]:
        raise MalformedPayload("Missing required fields: event_uuid or guest_email")

    state.update(booking)
    logger.info(f"Parsed booking {booking['event_uuid']} for {booking['guest_email']} ending {booking['end_time']}")
    return state


async def capture_recording(state: MeetingState, ctx) -> MeetingState:
    """Extract guest/meeting identity and transcript from a Fathom webhook."""
    client = ctx.fathom(state.get("account_id"))
    meeting = await client.process_webhook(state.get("raw", {}), ctx.settings.retry, sleep=ctx.sleep)

    for key in ("transcript", "guest_email", "guest_name", "host_email", "meeting_url", "start_time", "meeting_title"):
        state[key] = meeting.get(key)

    logger.info(f"Fathom data extracted for {state['guest_email']} ({len(state['transcript'])} chars)")
    return state


async def capture_lead(state: LeadState, ctx) -> LeadState:
    lead = extract_lead_data(state.get("raw", {}))
    if not lead["linkedin_url"]:
        raise MalformedPayload("HeyReach webhook missing LinkedIn URL")

    state["lead"] = lead
    state["linkedin_url"] = lead["linkedin_url"]
    logger.info(f"Extracted HeyReach lead {lead['name']} ({lead['linkedin_url']}), conversation={bool(lead['conversation'])}")
    return state


async def capture_enrichment(state: LeadState, ctx) -> LeadState:
    enrichment = extract_clay_data(state.get("raw", {}))
    if not enrichment["linkedin_url"]:
        raise MalformedPayload("Clay webhook missing LinkedIn URL")

    state["enrichment"] = enrichment
    state["linkedin_url"] = enrichment["linkedin_url"]
    logger.info(
        f"Processing Clay enrichment for {enrichment['linkedin_url']}: "
        f"email={bool(enrichment['email'])} phone={bool(enrichment['phone'])}"
    )
    return state
