from loguru import logger

from workflows.state import LeadState


async def find_person(state: LeadState, ctx) -> LeadState:
    """Look up the Attio person Clay enriched; a miss ends the workflow without error."""
    url = state["linkedin_url"]
    person_id = await ctx.attio.find_person_by_linkedin(url)

    if not person_id:
        logger.warning(f"No Attio person found for LinkedIn URL {url}, check the URL stored in Attio")
        state["status"] = "person_not_found"
        return state

    state["person_id"] = person_id
    return state


async def update_person(state: LeadState, ctx) -> LeadState:
    enrichment = state["enrichment"]
    result = await ctx.attio.update_person_fields(
        state["person_id"],
        email=enrichment.get("email"),
        phone=enrichment.get("phone"),
    )

    state["email_updated"] = result["email_updated"]
    state["phone_updated"] = result["phone_updated"]
    state["status"] = "updated"
    logger.info(f"Attio person {state['person_id']} updated: {result}")
    return state


async def attach_conversation(state: LeadState, ctx) -> LeadState:
    """Consume the pending HeyReach lead, if any, and add its conversation as a note."""
    pending = ctx.leads.get_pending_lead(state["linkedin_url"])
    state["note_added"] = False

    if not pending or not pending.conversation:
        logger.info(f"No pending HeyReach conversation for {state['linkedin_url']}")
        return state

    try:
        await ctx.attio.create_conversation_note(state["person_id"], pending)
        state["note_added"] = True
        logger.info(f"Added HeyReach conversation note to person {state['person_id']}")
    except Exception as e:
        logger.warning(f"Failed to add conversation note for person {state['person_id']}: {e}")
        state.setdefault("errors", []).append(f"conversation_note_failed: {e}")

    return state
