import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from loguru import logger

from services.config import RetrySettings
from services.errors import TranscriptNotReady
from services.polling import is_transcript_ready, poll_until_ready

CALENDLY_BASE_URL = "https://api.calendly.com"


def extract_transcript(data: Dict[str, Any]) -> Optional[str]:
    """Look for transcript text in the places Calendly may put it."""
    resource = data.get("resource") or data
    notes = resource.get("meeting_notes") or {}
    if not isinstance(notes, dict):
        notes = {}

    return (
        notes.get("transcript")
        or notes.get("transcription")
        or notes.get("summary")
        or resource.get("transcript")
        or resource.get("transcription")
    )


class CalendlyClient:
    """Calendly API client used to poll scheduled events for meeting transcripts."""

    def __init__(self, pat: Optional[str], base_url: str = CALENDLY_BASE_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.pat = pat
        self.base_url = base_url
        self.transport = transport

        if not self.pat:
            logger.warning("No Calendly PAT provided, transcript polling will fail")

    async def fetch_scheduled_event(self, event_uuid: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(base_url=self.base_url, timeout=20, transport=self.transport) as client:
            response = await client.get(
                f"/scheduled_events/{event_uuid}",
                headers={
                    "Authorization": f"Bearer {self.pat}",
                    "Content-Type": "application/json"
                }
            )
            response.raise_for_status()
            return response.json()

    async def fetch_transcript(self, event_uuid: str) -> str:
        """One read of the event; raises TranscriptNotReady when no transcript is attached yet."""
        transcript = extract_transcript(await self.fetch_scheduled_event(event_uuid))
        if not transcript:
            raise TranscriptNotReady(f"No transcript on event {event_uuid} yet")
        return transcript

    async def poll_for_transcript(
        self,
        event_uuid: str,
        retry: RetrySettings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> Optional[str]:
        """
        Poll the event with exponential backoff until a usable transcript shows up.

        Returns:
            Transcript text, or None if it never became available
        """
        return await poll_until_ready(
            lambda: self.fetch_transcript(event_uuid),
            is_transcript_ready,
            max_attempts=retry.max_attempts,
            base_delay=retry.base_delay,
            max_delay=retry.max_delay,
            sleep=sleep,
            label=f"Calendly transcript {event_uuid}",
        )
