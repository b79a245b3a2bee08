from loguru import logger

from services.lead_store import PendingLead
from workflows.state import LeadState, MeetingState


async def sync_meeting(state: MeetingState, ctx) -> MeetingState:
    """Upsert the guest in Attio and attach the call summary."""
    logger.info(f"Upserting {state['guest_email']} to Attio")

    result = await ctx.attio.upsert_person_and_note(
        state["guest_email"],
        state.get("guest_name", ""),
        state["summary"],
    )

    state["person_id"] = result["person_id"]
    state["note_id"] = result["note_id"]
    state["status"] = "synced"
    logger.info(f"Synced {state.get('source')} meeting to Attio: person={result['person_id']} note={result['note_id']}")
    return state


async def share_conversation(state: LeadState, ctx) -> LeadState:
    """
    Attach the conversation right away when the person already exists in Attio.

    Best effort: failures are logged and the lead stays pending for Clay. On
    success the pending lead is consumed so the note is not added twice.
    """
    lead = state["lead"]
    state["note_added"] = False
    if not lead.get("conversation"):
        return state

    try:
        person_id = await ctx.attio.find_person_by_linkedin(state["linkedin_url"])
        if not person_id:
            logger.info("No existing Attio person found, note will be added after Clay enrichment")
            return state

        logger.info(f"Found existing Attio person {person_id}, adding conversation note")
        await ctx.attio.create_conversation_note(person_id, PendingLead(**lead))
        ctx.leads.get_pending_lead(state["linkedin_url"])
        state["person_id"] = person_id
        state["note_added"] = True

    except Exception as e:
        logger.warning(f"Failed to add conversation note to Attio: {e}")
        state.setdefault("errors", []).append(f"conversation_note_failed: {e}")

    return state
