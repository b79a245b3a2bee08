import hmac
from typing import Any, Dict, Optional

from langgraph.graph import StateGraph, START, END
from loguru import logger

from services.errors import InvalidSignature, MalformedPayload
from services.fathom import verify_signature
from workflows.context import RelayContext
from workflows.nodes.capture import capture_booking, capture_enrichment, capture_lead, capture_recording
from workflows.nodes.correlate import correlate_booking, stash_lead, store_booking
from workflows.nodes.crm import share_conversation, sync_meeting
from workflows.nodes.enrich import attach_conversation, find_person, update_person
from workflows.nodes.summarize import generate_summary
from workflows.nodes.transcript import poll_transcript, wait_for_meeting
from workflows.state import LeadState, MeetingState
from workflows.steps import StepFailed, bind_step, continue_unless, edges

SOURCE_LABELS = {
    "calendly": "Calendly → Attio Sync",
    "fathom": "Fathom → Attio Sync",
    "heyreach": "HeyReach → Attio Sync",
    "clay": "Clay → Attio Enrichment",
}


def _chain(workflow: StateGraph, ctx: RelayContext, *nodes) -> None:
    """Add ``nodes`` (functions) to ``workflow`` as a straight line ending at END."""
    for node in nodes:
        workflow.add_node(node.__name__, bind_step(node.__name__, node, ctx))
    for current, following in zip(nodes, nodes[1:]):
        workflow.add_edge(current.__name__, following.__name__)
    workflow.add_edge(nodes[-1].__name__, END)


def build_calendly_workflow(ctx: RelayContext):
    """Calendly booking → wait for the call → poll transcript → summary → Attio."""
    workflow = StateGraph(MeetingState)
    workflow.add_node("capture_booking", bind_step("capture_booking", capture_booking, ctx))
    _chain(workflow, ctx, store_booking, wait_for_meeting, poll_transcript, generate_summary, sync_meeting)

    workflow.add_edge(START, "capture_booking")
    workflow.add_conditional_edges("capture_booking", continue_unless("skipped"), edges("store_booking"))
    return workflow.compile()


def build_fathom_workflow(ctx: RelayContext):
    """Fathom recording → match Calendly booking → summary → Attio."""
    workflow = StateGraph(MeetingState)
    _chain(workflow, ctx, capture_recording, correlate_booking, generate_summary, sync_meeting)
    workflow.add_edge(START, "capture_recording")
    return workflow.compile()


def build_heyreach_workflow(ctx: RelayContext):
    """HeyReach interested lead → pending store → (optional) immediate conversation note."""
    workflow = StateGraph(LeadState)
    _chain(workflow, ctx, capture_lead, stash_lead, share_conversation)
    workflow.add_edge(START, "capture_lead")
    return workflow.compile()


def build_clay_workflow(ctx: RelayContext):
    """Clay enrichment → find Attio person → patch email/phone → pending conversation note."""
    workflow = StateGraph(LeadState)
    workflow.add_node("capture_enrichment", bind_step("capture_enrichment", capture_enrichment, ctx))
    workflow.add_node("find_person", bind_step("find_person", find_person, ctx))
    _chain(workflow, ctx, update_person, attach_conversation)

    workflow.add_edge(START, "capture_enrichment")
    workflow.add_edge("capture_enrichment", "find_person")
    workflow.add_conditional_edges("find_person", continue_unless("person_not_found"), edges("update_person"))
    return workflow.compile()


def secret_matches(provided: Optional[str], expected: Optional[str]) -> bool:
    """Shared-secret header check; passes when no secret is configured."""
    if not expected:
        return True
    return bool(provided) and hmac.compare_digest(provided, expected)


class WebhookRelay:
    """
    Runs one workflow per webhook source against a shared :class:`RelayContext`.

    Outcomes never propagate to the HTTP layer: malformed or unverified
    deliveries are logged and dropped, step failures are logged and reported
    to Slack.
    """

    def __init__(self, ctx: RelayContext):
        self.ctx = ctx
        self.graphs = {
            "calendly": build_calendly_workflow(ctx),
            "fathom": build_fathom_workflow(ctx),
            "heyreach": build_heyreach_workflow(ctx),
            "clay": build_clay_workflow(ctx),
        }

    async def handle_calendly(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._run("calendly", {"raw": payload})

    async def handle_fathom(
        self,
        payload: Dict[str, Any],
        body: bytes = b"",
        signature: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        secret = self.ctx.settings.get_fathom_account(account_id).webhook_secret
        if not verify_signature(signature, body, secret):
            return self._rejected("fathom", InvalidSignature(f"Invalid Fathom signature (account={account_id})"))
        return await self._run("fathom", {"raw": payload, "account_id": account_id})

    async def handle_heyreach(self, payload: Dict[str, Any], secret: Optional[str] = None) -> Dict[str, Any]:
        if not secret_matches(secret, self.ctx.settings.heyreach_webhook_secret):
            return self._rejected("heyreach", InvalidSignature("Invalid HeyReach webhook secret"))
        return await self._run("heyreach", {"raw": payload})

    async def handle_clay(self, payload: Dict[str, Any], secret: Optional[str] = None) -> Dict[str, Any]:
        if not secret_matches(secret, self.ctx.settings.clay_webhook_secret):
            return self._rejected("clay", InvalidSignature("Invalid Clay webhook secret"))
        return await self._run("clay", {"raw": payload})

    def _rejected(self, source: str, error: Exception) -> Dict[str, Any]:
        logger.bind(source=source).warning(f"Dropping {source} webhook: {error}")
        return {"source": source, "status": "rejected", "errors": [str(error)]}

    async def _run(self, source: str, initial: Dict[str, Any]) -> Dict[str, Any]:
        log = logger.bind(source=source)
        state = {"source": source, "errors": [], **initial}

        try:
            result = await self.graphs[source].ainvoke(state)
            log.info(f"{source} webhook processed: status={result.get('status')}")
            return result

        except MalformedPayload as e:
            return self._rejected(source, e)

        except StepFailed as e:
            log.error(f"{source} workflow failed at step: {e.step}: {e.cause!r}")
            await self.ctx.slack.send_error(e.step, e.cause, SOURCE_LABELS[source])
            return {"source": source, "status": "failed", "current_step": e.step, "errors": [str(e.cause)]}
