import os
import time
from typing import Any, Dict, Optional
from fastapi import FastAPI, Request, BackgroundTasks, Header
from fastapi.responses import JSONResponse
from loguru import logger
from dotenv import load_dotenv

# Import our modules
from services.config import Settings, validate_env
from workflows.context import RelayContext
from workflows.relay import WebhookRelay

VERSION = "1.0.0"

# Load environment variables
load_dotenv()

# Configure logging
logger.add("logs/app.log", rotation="1 day", retention="7 days", level="INFO", serialize=True)

ACK = {"received": True}


async def read_payload(req: Request) -> Optional[Dict[str, Any]]:
    """Decode a webhook body; None (after a warning) when it is not a JSON object."""
    try:
        payload = await req.json()
    except ValueError as e:
        logger.warning(f"Dropping {req.url.path} webhook: body is not valid JSON ({e})")
        return None

    if not isinstance(payload, dict):
        logger.warning(f"Dropping {req.url.path} webhook: expected a JSON object, got {type(payload).__name__}")
        return None
    return payload


def create_app(relay: Optional[WebhookRelay] = None) -> FastAPI:
    """
    Build the FastAPI app around a relay (a fresh one from the environment by default).

    Every webhook route acknowledges immediately; the workflow runs as a
    background task after the response has been sent.
    """
    relay = relay or WebhookRelay(RelayContext.from_settings(Settings.from_env()))

    app = FastAPI(
        title="Meeting & Lead Relay",
        description="Relays Calendly, Fathom, HeyReach and Clay events into Attio",
        version=VERSION
    )
    app.state.relay = relay

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}")
        return await call_next(request)

    @app.post("/webhook/calendly")
    async def calendly_webhook(req: Request, background: BackgroundTasks):
        """
        Calendly webhook endpoint.

        Expected payload:
        {
            "event": "invitee.created",
            "payload": {
                "email": "guest@company.com",
                "name": "Guest Name",
                "scheduled_event": {"uri": ".../scheduled_events/<uuid>", "start_time": "...", "end_time": "..."}
            }
        }
        """
        payload = await read_payload(req)
        if payload is not None:
            background.add_task(relay.handle_calendly, payload)
        return ACK

    @app.post("/webhook/fathom")
    @app.post("/webhook/fathom/{account_id}")
    async def fathom_webhook(
        req: Request,
        background: BackgroundTasks,
        account_id: Optional[str] = None,
        webhook_signature: Optional[str] = Header(None),
    ):
        """Fathom webhook endpoint, optionally scoped to one Fathom account."""
        body = await req.body()
        payload = await read_payload(req)
        if payload is not None:
            background.add_task(relay.handle_fathom, payload, body, webhook_signature, account_id)
        return ACK

    @app.post("/webhook/heyreach")
    async def heyreach_webhook(
        req: Request,
        background: BackgroundTasks,
        x_webhook_secret: Optional[str] = Header(None),
    ):
        """HeyReach "lead tagged as interested" webhook."""
        payload = await read_payload(req)
        if payload is not None:
            background.add_task(relay.handle_heyreach, payload, x_webhook_secret)
        return ACK

    @app.post("/webhook/clay")
    async def clay_webhook(
        req: Request,
        background: BackgroundTasks,
        x_webhook_secret: Optional[str] = Header(None),
    ):
        """Clay enrichment-complete callback."""
        payload = await read_payload(req)
        if payload is not None:
            background.add_task(relay.handle_clay, payload, x_webhook_secret)
        return ACK

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "timestamp": time.time(),
            "version": VERSION,
            "stores": {
                "bookings": len(relay.ctx.bookings),
                "pending_leads": relay.ctx.leads.pending_count()
            }
        }

    @app.get("/metrics")
    def get_metrics():
        """Get correlation store sizes."""
        return {
            "bookings_tracked": len(relay.ctx.bookings),
            "pending_leads": relay.ctx.leads.pending_count()
        }

    @app.get("/admin/leads/pending")
    def pending_lead_status(linkedin_url: str):
        """Check whether a lead is waiting for enrichment (does not consume it)."""
        return {
            "linkedin_url": linkedin_url,
            "pending": relay.ctx.leads.has_pending_lead(linkedin_url)
        }

    # Error handlers
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    validate_env()
    settings = Settings.from_env()

    logger.info(f"Starting Meeting & Lead Relay on port {settings.port}")

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=settings.port,
        log_level="info"
    )
