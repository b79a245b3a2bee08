from loguru import logger

from services.errors import TranscriptUnavailable
from services.normalize import parse_timestamp
from workflows.state import MeetingState

# Give the notetaker a minute after the scheduled end before polling.
END_GRACE_SECONDS = 60


async def wait_for_meeting(state: MeetingState, ctx) -> MeetingState:
    """Sleep until the meeting's scheduled end (plus grace) if it has not ended yet."""
    end_time = parse_timestamp(state.get("end_time"))
    if end_time is None:
        logger.warning(f"Booking {state.get('event_uuid')} has no end time, polling right away")
        return state

    remaining = (end_time - ctx.now()).total_seconds()
    if remaining > 0:
        wait = remaining + END_GRACE_SECONDS
        logger.info(f"Meeting not ended, waiting {wait:.0f}s")
        await ctx.sleep(wait)

    return state


async def poll_transcript(state: MeetingState, ctx) -> MeetingState:
    transcript = await ctx.calendly.poll_for_transcript(state["event_uuid"], ctx.settings.retry, sleep=ctx.sleep)
    if not transcript:
        raise TranscriptUnavailable("Transcript not available after maximum retries")

    state["transcript"] = transcript
    logger.info(f"Transcript retrieved ({len(transcript)} chars)")
    return state
