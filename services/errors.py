class RelayError(Exception):
    """Base class for errors raised by the relay."""


class MalformedPayload(RelayError):
    """A webhook payload lacks the fields needed to identify what it is about."""


class TranscriptNotReady(RelayError):
    """The remote transcript does not exist yet; the poll loop retries on this."""


class TranscriptUnavailable(RelayError):
    """The transcript never became available within the retry budget."""


class InvalidSignature(RelayError):
    """Webhook signature or shared secret did not verify."""
