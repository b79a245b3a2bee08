import os
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv
from loguru import logger

# Only Attio is required; the other keys enable individual integrations.
REQUIRED_ENV_VARS = ["ATTIO_API_KEY"]


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def _hours(value: Optional[float]) -> Optional[float]:
    return value * 3600 if value is not None else None


@dataclass
class RetrySettings:
    """Transcript polling budget (seconds)."""
    max_attempts: int = 5
    base_delay: float = 30.0
    max_delay: float = 900.0


@dataclass
class OpenAISettings:
    model: str = "gpt-4o"
    temperature: float = 0.3
    max_tokens: int = 1500


@dataclass
class FathomAccount:
    api_key: Optional[str] = None
    webhook_secret: Optional[str] = None


@dataclass
class Settings:
    calendly_pat: Optional[str] = None
    attio_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None

    fathom_accounts: Dict[str, FathomAccount] = field(default_factory=dict)
    fathom_api_key: Optional[str] = None
    fathom_webhook_secret: Optional[str] = None

    heyreach_webhook_secret: Optional[str] = None
    clay_webhook_secret: Optional[str] = None
    slack_webhook_url: Optional[str] = None

    port: int = 3000
    booking_ttl: Optional[float] = 24 * 3600
    pending_lead_ttl: Optional[float] = None

    retry: RetrySettings = field(default_factory=RetrySettings)
    openai: OpenAISettings = field(default_factory=OpenAISettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (and .env, if present)."""
        load_dotenv()

        accounts: Dict[str, FathomAccount] = {}
        for account_id in _account_ids():
            prefix = f"FATHOM_{account_id.upper()}"
            accounts[account_id] = FathomAccount(
                api_key=os.getenv(f"{prefix}_API_KEY") or None,
                webhook_secret=os.getenv(f"{prefix}_WEBHOOK_SECRET") or None,
            )

        try:
            port = int(os.getenv("PORT", "3000"))
        except ValueError:
            port = 3000

        return cls(
            calendly_pat=os.getenv("CALENDLY_PAT"),
            attio_api_key=os.getenv("ATTIO_API_KEY"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            fathom_accounts=accounts,
            fathom_api_key=os.getenv("FATHOM_API_KEY") or None,
            fathom_webhook_secret=os.getenv("FATHOM_WEBHOOK_SECRET") or None,
            heyreach_webhook_secret=os.getenv("HEYREACH_WEBHOOK_SECRET") or None,
            clay_webhook_secret=os.getenv("CLAY_WEBHOOK_SECRET") or None,
            slack_webhook_url=os.getenv("SLACK_WEBHOOK_URL") or None,
            port=port,
            booking_ttl=_hours(_env_float("BOOKING_TTL_HOURS", 24)),
            pending_lead_ttl=_hours(_env_float("PENDING_LEAD_TTL_HOURS", None)),
            retry=RetrySettings(
                max_attempts=int(_env_float("RETRY_MAX_ATTEMPTS", 5)),
                base_delay=_env_float("RETRY_BASE_DELAY_SECONDS", 30.0),
                max_delay=_env_float("RETRY_MAX_DELAY_SECONDS", 900.0),
            ),
            openai=OpenAISettings(model=os.getenv("OPENAI_MODEL", "gpt-4o")),
        )

    def get_fathom_account(self, account_id: Optional[str]) -> FathomAccount:
        """Per-account Fathom credentials, falling back to the single legacy key pair."""
        account = self.fathom_accounts.get((account_id or "").lower())
        if account and account.api_key:
            return account
        return FathomAccount(api_key=self.fathom_api_key, webhook_secret=self.fathom_webhook_secret)


def _account_ids() -> List[str]:
    raw = os.getenv("FATHOM_ACCOUNTS", "")
    return [part.strip().lower() for part in raw.split(",") if part.strip()]


def validate_env() -> None:
    """Fail fast on startup when a required variable is missing."""
    load_dotenv()
    missing = [key for key in REQUIRED_ENV_VARS if not os.getenv(key)]
    if missing:
        logger.error(f"Missing required environment variables: {missing}")
        logger.error("Copy .env.example to .env and fill in your API keys.")
        sys.exit(1)

    logger.info("Environment variables validated")
