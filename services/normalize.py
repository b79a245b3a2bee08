import re
from datetime import datetime, timezone
from typing import Optional, Union
from urllib.parse import urlsplit

# <scheme>://<www/m/country label>.<site>/in/<handle>/...  (scheme and leading labels optional)
PROFILE_PATTERN = re.compile(
    r"^(?:[a-z][a-z0-9+.-]*://)?(?:(?:www|m|[a-z]{2})\.)*([a-z0-9-]+(?:\.[a-z0-9-]+)+)/in/([^/?#]+)"
)


def _strip(value: Optional[str]) -> Optional[str]:
    """Lower-case, drop query/fragment and trailing slashes. None for blank input."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    url = text.lower().split("#", 1)[0].split("?", 1)[0]
    return url.rstrip("/")


def normalize_url(value: Optional[str]) -> Optional[str]:
    """
    Canonicalize a URL for equality comparison.

    Lower-cases, removes the query string and fragment and strips trailing
    slashes. Input that does not parse as a URL is returned trimmed but
    otherwise untouched.
    """
    url = _strip(value)
    if url is None:
        return None

    try:
        parts = urlsplit(url)
    except ValueError:
        return str(value).strip()

    if not parts.scheme or not parts.netloc:
        return str(value).strip()

    return url


def normalize_profile_url(value: Optional[str]) -> Optional[str]:
    """
    Canonicalize a profile URL such as a LinkedIn ``/in/<handle>`` link.

    ``linkedin.com/in/JohnDoe/``, ``https://uk.linkedin.com/in/johndoe?trk=x``
    and ``https://www.linkedin.com/in/johndoe/details/experience`` all become
    ``https://www.linkedin.com/in/johndoe``. Anything else falls back to
    :func:`normalize_url`.
    """
    url = _strip(value)
    if url is None:
        return None

    match = PROFILE_PATTERN.match(url)
    if match:
        domain, handle = match.groups()
        return f"https://www.{domain}/in/{handle}"

    return normalize_url(value)


def normalize_email(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    email = str(value).strip().lower()
    return email or None


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime (naive input is taken as UTC)."""
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
