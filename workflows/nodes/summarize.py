from loguru import logger

from workflows.state import MeetingState


async def generate_summary(state: MeetingState, ctx) -> MeetingState:
    """Generate the markdown call summary that becomes the CRM note."""
    logger.info(f"Generating AI summary for {state.get('guest_email', 'unknown')}")

    summary = await ctx.llm.generate_summary(state["transcript"])
    state["summary"] = summary

    logger.info(f"Summary generated ({len(summary)} chars)")
    return state
