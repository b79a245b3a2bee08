import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from services.attio import AttioClient
from services.calendly import CalendlyClient
from services.config import Settings
from services.fathom import FathomClient
from services.lead_store import LeadStore
from services.llm import LLMClient
from services.meeting_store import BookingStore
from services.slack import SlackNotifier


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RelayContext:
    """Everything a workflow node may touch: settings, stores and API clients."""
    settings: Settings
    bookings: BookingStore
    leads: LeadStore
    calendly: CalendlyClient
    attio: AttioClient
    llm: LLMClient
    slack: SlackNotifier
    fathom_factory: Optional[Callable[[Optional[str]], FathomClient]] = None
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    now: Callable[[], datetime] = utcnow

    def fathom(self, account_id: Optional[str] = None) -> FathomClient:
        if self.fathom_factory is not None:
            return self.fathom_factory(account_id)
        return FathomClient(self.settings.get_fathom_account(account_id).api_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayContext":
        return cls(
            settings=settings,
            bookings=BookingStore(ttl=settings.booking_ttl),
            leads=LeadStore(ttl=settings.pending_lead_ttl),
            calendly=CalendlyClient(settings.calendly_pat),
            attio=AttioClient(settings.attio_api_key),
            llm=LLMClient(settings.openai_api_key, settings.openai),
            slack=SlackNotifier(settings.slack_webhook_url),
        )
