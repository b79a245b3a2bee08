from typing import TypedDict, Optional, List, Dict, Any


class MeetingState(TypedDict, total=False):
    """State shape for the Calendly and Fathom meeting workflows."""
    source: str                      # "calendly" | "fathom"
    raw: Dict[str, Any]              # original webhook payload
    account_id: Optional[str]        # Fathom account from the URL path
    event_uuid: Optional[str]
    guest_email: str
    guest_name: str
    host_email: Optional[str]
    meeting_url: Optional[str]
    start_time: Optional[str]
    end_time: Optional[str]
    meeting_title: Optional[str]
    matched_booking: Optional[str]   # event uuid of the correlated Calendly booking
    transcript: Optional[str]
    summary: Optional[str]
    person_id: Optional[str]         # Attio record id
    note_id: Optional[str]
    current_step: str
    status: str                      # "synced" | "skipped"
    errors: List[str]


class LeadState(TypedDict, total=False):
    """State shape for the HeyReach and Clay lead workflows."""
    source: str                      # "heyreach" | "clay"
    raw: Dict[str, Any]
    lead: Dict[str, Any]             # normalized HeyReach lead (PendingLead fields)
    enrichment: Dict[str, Any]       # normalized Clay row
    linkedin_url: Optional[str]
    person_id: Optional[str]
    email_updated: bool
    phone_updated: bool
    note_added: bool
    current_step: str
    status: str                      # "stored" | "updated" | "person_not_found" | "skipped"
    errors: List[str]
