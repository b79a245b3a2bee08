import httpx
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from loguru import logger

from services.lead_store import PendingLead

ATTIO_BASE_URL = "https://api.attio.com/v2"


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _is_uniqueness_conflict(error: httpx.HTTPStatusError) -> bool:
    return error.response.status_code in (400, 409) and "uniqueness" in error.response.text.lower()


def _record_id(record: Dict[str, Any]) -> Optional[str]:
    return (record.get("id") or {}).get("record_id")


def format_conversation_note(lead: PendingLead) -> str:
    """Render a HeyReach conversation as a markdown note body."""
    lines = [f"## LinkedIn Conversation with {lead.name or 'Lead'}", ""]

    if lead.company:
        lines.append(f"**Company:** {lead.company}")
    if lead.title:
        lines.append(f"**Title:** {lead.title}")
    if lead.linkedin_url:
        lines.append(f"**LinkedIn:** {lead.linkedin_url}")

    lines.append(f"**Tagged as:** {lead.tag or 'interested'}")
    lines.append(f"**Tagged at:** {lead.tagged_at or _today()}")
    lines += ["", "---", "", "### Conversation Transcript", ""]
    lines.append(lead.conversation or "_No conversation data available_")
    return "\n".join(lines)


class AttioClient:
    """Attio CRM integration client (people records and notes)."""

    def __init__(self, api_key: Optional[str], base_url: str = ATTIO_BASE_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.base_url = base_url
        self.transport = transport

        if not self.api_key:
            logger.warning("No Attio API key provided, CRM calls will be rejected")

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for Attio API requests."""
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._get_headers(),
            timeout=20,
            transport=self.transport,
        )

    async def upsert_person_and_note(self, email: str, name: str, summary: str) -> Dict[str, Any]:
        """
        Find a person by email (creating one if needed) and attach a summary note.

        Args:
            email: Guest email address
            name: Guest full name
            summary: Markdown summary to add as note

        Returns:
            {"person_id", "note_id", "email"}
        """
        person_id = await self.find_person_by_email(email)

        if not person_id:
            logger.info(f"Person not found, creating new record for {email}")
            person_id = await self.create_person(email, name)
        else:
            logger.info(f"Found existing person {person_id} for {email}")

        note_id = await self.create_note(person_id, f"Call Summary - {_today()}", summary)
        return {"person_id": person_id, "note_id": note_id, "email": email}

    async def _query_person(self, filter_: Dict[str, Any], label: str) -> Optional[str]:
        try:
            async with self._client() as client:
                response = await client.post("/objects/people/records/query", json={"filter": filter_})
                response.raise_for_status()
                records = response.json().get("data") or []
                return _record_id(records[0]) if records else None
        except httpx.HTTPStatusError as e:
            # 400/404 mean "no results" for a query
            if e.response.status_code in (400, 404):
                logger.info(f"No person found by {label}")
                return None
            logger.error(f"Attio {label} search error: {e.response.status_code} {e.response.text}")
            raise

    async def find_person_by_email(self, email: str) -> Optional[str]:
        """Find a person record id by email address."""
        return await self._query_person({"email_addresses": email}, "email")

    async def find_person_by_linkedin(self, linkedin_url: str) -> Optional[str]:
        """Find a person record id by LinkedIn profile URL."""
        person_id = await self._query_person({"linkedin": linkedin_url}, "LinkedIn URL")
        if person_id:
            logger.info(f"Found person {person_id} by LinkedIn URL {linkedin_url}")
        return person_id

    async def create_person(self, email: str, name: str) -> str:
        """Create a new person record."""
        parts = (name or "").strip().split()
        values = {
            "email_addresses": [{"email_address": email}],
            "name": [{
                "full_name": (name or "").strip(),
                "first_name": parts[0] if parts else "",
                "last_name": " ".join(parts[1:]),
            }],
        }

        async with self._client() as client:
            response = await client.post("/objects/people/records", json={"data": {"values": values}})
            if response.is_error:
                logger.error(f"Attio create person error: {response.status_code} {response.text}")
            response.raise_for_status()
            person_id = _record_id(response.json()["data"])

        logger.info(f"Created new person {person_id} for {email}")
        return person_id

    async def create_note(self, person_id: str, title: str, content: str) -> Optional[str]:
        """Create a markdown note attached to a person."""
        payload = {
            "data": {
                "parent_object": "people",
                "parent_record_id": person_id,
                "title": title,
                "format": "markdown",
                "content": content,
            }
        }

        async with self._client() as client:
            response = await client.post("/notes", json=payload)
            if response.is_error:
                logger.error(f"Attio create note error: {response.status_code} {response.text}")
            response.raise_for_status()
            note = response.json().get("data") or {}

        note_id = note.get("id")
        if isinstance(note_id, dict):
            note_id = note_id.get("note_id")
        logger.info(f"Created note {note_id} '{title}' on person {person_id}")
        return note_id

    async def create_conversation_note(self, person_id: str, lead: PendingLead) -> Optional[str]:
        """Attach a HeyReach conversation transcript to a person."""
        return await self.create_note(
            person_id,
            f"HeyReach Conversation - {_today()}",
            format_conversation_note(lead),
        )

    async def _patch_person(self, person_id: str, values: Dict[str, Any]) -> None:
        async with self._client() as client:
            response = await client.patch(f"/objects/people/records/{person_id}", json={"data": {"values": values}})
            response.raise_for_status()

    async def update_person_fields(self, person_id: str, email: Optional[str] = None,
                                   phone: Optional[str] = None) -> Dict[str, bool]:
        """
        Add enriched email / phone values to a person.

        A uniqueness conflict (the value already belongs to another record)
        does not abort the update: the fields are retried one at a time and
        the conflicting ones are skipped.

        Returns:
            {"email_updated": bool, "phone_updated": bool}
        """
        fields = {}
        if email:
            fields["email_addresses"] = [{"email_address": email}]
        if phone:
            fields["phone_numbers"] = [{"original_phone_number": phone}]

        result = {"email_updated": False, "phone_updated": False}
        flags = {"email_addresses": "email_updated", "phone_numbers": "phone_updated"}

        if not fields:
            logger.info(f"No fields to update for person {person_id}")
            return result

        try:
            await self._patch_person(person_id, fields)
            for attribute in fields:
                result[flags[attribute]] = True
            logger.info(f"Updated person {person_id} fields: {list(fields)}")
            return result
        except httpx.HTTPStatusError as e:
            if not _is_uniqueness_conflict(e):
                logger.error(f"Attio update person {person_id} error: {e.response.status_code} {e.response.text}")
                raise
            logger.warning(f"Uniqueness conflict updating person {person_id}, retrying fields individually")

        for attribute, value in fields.items():
            try:
                await self._patch_person(person_id, {attribute: value})
                result[flags[attribute]] = True
            except httpx.HTTPStatusError as e:
                if not _is_uniqueness_conflict(e):
                    raise
                logger.warning(f"Skipping {attribute} for person {person_id}: value belongs to another record")

        return result
