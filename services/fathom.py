"""
Fathom AI notetaker integration: webhook parsing, transcript fetching and
signature verification.

Docs: https://developers.fathom.ai
"""

import asyncio
import base64
import hashlib
import hmac
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx
from loguru import logger

from services.config import RetrySettings
from services.errors import MalformedPayload, TranscriptUnavailable
from services.normalize import normalize_email
from services.polling import is_transcript_ready, poll_until_ready

FATHOM_API_BASE = "https://api.fathom.ai/external/v1"


def format_timestamp(timestamp: Union[int, float, str]) -> str:
    """Seconds (or milliseconds, for large numbers) -> ``mm:ss``. ``hh:mm:ss`` strings pass through."""
    if isinstance(timestamp, str):
        if ":" in timestamp:
            return timestamp
        try:
            seconds = float(timestamp)
        except ValueError:
            return timestamp
    else:
        seconds = timestamp / 1000 if timestamp > 10000 else float(timestamp)

    return f"{int(seconds // 60):02d}:{int(seconds % 60):02d}"


def _speaker_name(segment: Dict[str, Any]) -> str:
    speaker = segment.get("speaker") or segment.get("speaker_name")
    if isinstance(speaker, dict):
        speaker = speaker.get("display_name") or speaker.get("name")
    return speaker or "Speaker"


def format_transcript_segments(segments: List[Dict[str, Any]]) -> str:
    """Render transcript segments as ``(mm:ss) Speaker: text`` paragraphs."""
    lines = []
    for segment in segments:
        text = segment.get("text") or segment.get("content") or segment.get("words") or ""
        timestamp = segment.get("start_time") or segment.get("timestamp")
        if timestamp not in (None, ""):
            lines.append(f"({format_timestamp(timestamp)}) {_speaker_name(segment)}: {text}")
        else:
            lines.append(f"{_speaker_name(segment)}: {text}")
    return "\n\n".join(lines)


def coerce_transcript(data: Any) -> Optional[str]:
    """Accept the transcript shapes Fathom returns (text, segment list, or wrapped object)."""
    if data is None:
        return None
    if isinstance(data, str):
        return data
    if isinstance(data, list):
        return format_transcript_segments(data)
    if isinstance(data, dict) and "transcript" in data:
        return coerce_transcript(data["transcript"])

    logger.warning(f"Unexpected transcript format from Fathom: {type(data).__name__}")
    return str(data)


def verify_signature(signature: Optional[str], body: bytes, secret: Optional[str]) -> bool:
    """
    Verify a ``webhook-signature`` header of the form ``v1,<base64 hmac-sha256>``.

    Several space-separated signatures may be present; any match passes.
    Without a configured secret verification is skipped.
    """
    if not secret:
        logger.warning("Fathom webhook secret not configured, skipping verification")
        return True

    if not signature:
        return False

    expected = base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()
    for candidate in signature.split():
        _, _, sig = candidate.partition(",")
        if sig and hmac.compare_digest(sig, expected):
            return True
    return False


def _email_of(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("email") or value.get("email_address")
    return value


def parse_recording(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Pull attendee / meeting identity out of a Fathom webhook payload.

    The guest is the first attendee who is not the host (external attendees
    preferred), falling back to the first attendee listed.
    """
    attendees = payload.get("attendees") or payload.get("participants") or payload.get("calendar_invitees") or []
    host_email = normalize_email(_email_of(payload.get("host_email") or payload.get("recorded_by")))

    def is_guest(attendee: Dict[str, Any]) -> bool:
        email = normalize_email(_email_of(attendee))
        return bool(email) and email != host_email

    guests = [a for a in attendees if isinstance(a, dict) and is_guest(a)]
    external = [a for a in guests if a.get("is_external")]
    guest = (external or guests or attendees or [{}])[0]
    if not isinstance(guest, dict):
        guest = {}

    transcript = payload.get("transcript") or payload.get("transcription")

    return {
        "recording_id": payload.get("recording_id"),
        "transcript": coerce_transcript(transcript) if transcript else None,
        "guest_email": normalize_email(_email_of(guest) or payload.get("guest_email")),
        "guest_name": guest.get("name") or guest.get("display_name") or payload.get("guest_name") or "Unknown Attendee",
        "host_email": host_email,
        "meeting_url": payload.get("meeting_url") or payload.get("meeting_join_url") or payload.get("join_url"),
        "start_time": (
            payload.get("start_time")
            or payload.get("scheduled_start_time")
            or payload.get("recording_start_time")
        ),
        "meeting_title": payload.get("title") or payload.get("meeting_title") or "Fathom Meeting",
    }


class FathomClient:
    """Fathom API client for one account."""

    def __init__(self, api_key: Optional[str], base_url: str = FATHOM_API_BASE,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.base_url = base_url
        self.transport = transport

    async def fetch_transcript(self, recording_id: Union[str, int]) -> Optional[str]:
        logger.info(f"Fetching transcript from Fathom API for recording {recording_id}")

        async with httpx.AsyncClient(base_url=self.base_url, timeout=20, transport=self.transport) as client:
            response = await client.get(
                f"/recordings/{recording_id}/transcript",
                headers={"X-Api-Key": self.api_key or ""}
            )
            response.raise_for_status()

        try:
            data = response.json()
        except ValueError:
            data = response.text
        return coerce_transcript(data)

    async def process_webhook(
        self,
        payload: Dict[str, Any],
        retry: RetrySettings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> Dict[str, Any]:
        """
        Parse a Fathom webhook and make sure a transcript is attached.

        If the payload only carries a ``recording_id`` the transcript is
        polled from the API with the same backoff as Calendly transcripts.

        Raises:
            MalformedPayload: no guest email, or neither transcript nor recording id
            TranscriptUnavailable: the recording's transcript never became ready
        """
        logger.info(f"Processing Fathom webhook for meeting {payload.get('meeting_id') or payload.get('id')}")
        meeting = parse_recording(payload)

        if not meeting["guest_email"]:
            raise MalformedPayload("No guest email found in Fathom webhook")

        if not meeting["transcript"]:
            recording_id = meeting["recording_id"]
            if not recording_id:
                raise MalformedPayload("No transcript or recording_id in Fathom webhook")

            transcript = await poll_until_ready(
                lambda: self.fetch_transcript(recording_id),
                is_transcript_ready,
                max_attempts=retry.max_attempts,
                base_delay=retry.base_delay,
                max_delay=retry.max_delay,
                sleep=sleep,
                label=f"Fathom transcript {recording_id}",
            )
            if not transcript:
                raise TranscriptUnavailable(f"Fathom transcript for recording {recording_id} not available")
            meeting["transcript"] = transcript

        meeting["source"] = "fathom"
        return meeting
