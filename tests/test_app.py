import json
import os
import sys

from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from workflows.relay import WebhookRelay
from test_flow import PROFILE, calendly_payload, clay_payload, fathom_payload, heyreach_payload, make_ctx, sign


class TestWebhookEndpoints:
    """HTTP surface: every webhook is acknowledged, the workflow runs afterwards."""

    def setup_method(self):
        self.ctx = make_ctx()
        self.client = TestClient(create_app(WebhookRelay(self.ctx)))

    def test_health(self):
        response = self.client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["stores"] == {"bookings": 0, "pending_leads": 0}

    def test_calendly_acknowledged_and_processed(self):
        response = self.client.post("/webhook/calendly", json=calendly_payload())

        assert response.status_code == 200
        assert response.json() == {"received": True}
        self.ctx.attio.upsert_person_and_note.assert_awaited_once()
        assert self.client.get("/metrics").json()["bookings_tracked"] == 1

    def test_failure_is_still_acknowledged(self):
        self.ctx.calendly.poll_for_transcript.return_value = None

        response = self.client.post("/webhook/calendly", json=calendly_payload())

        assert response.status_code == 200
        assert response.json() == {"received": True}
        self.ctx.slack.send_error.assert_awaited_once()

    def test_malformed_payload_acknowledged(self):
        response = self.client.post("/webhook/clay", json={"data": {}})

        assert response.status_code == 200
        self.ctx.attio.find_person_by_linkedin.assert_not_awaited()

    def test_invalid_json_acknowledged(self):
        for path in ("/webhook/calendly", "/webhook/fathom", "/webhook/heyreach", "/webhook/clay"):
            response = self.client.post(path, content=b"not json", headers={"content-type": "application/json"})

            assert response.status_code == 200
            assert response.json() == {"received": True}

        self.ctx.attio.find_person_by_linkedin.assert_not_awaited()
        self.ctx.calendly.poll_for_transcript.assert_not_awaited()
        self.ctx.slack.send_error.assert_not_awaited()

    def test_non_object_json_acknowledged(self):
        response = self.client.post("/webhook/heyreach", json=["not", "an", "object"])

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert self.ctx.leads.pending_count() == 0

    def test_fathom_account_route(self):
        response = self.client.post("/webhook/fathom/datalabs", json=fathom_payload())

        assert response.status_code == 200
        assert self.ctx.requested_accounts == ["datalabs"]
        self.ctx.attio.upsert_person_and_note.assert_awaited_once()

    def test_fathom_signature_header(self):
        ctx = make_ctx(fathom_webhook_secret="whsec_test")
        client = TestClient(create_app(WebhookRelay(ctx)))
        body = json.dumps(fathom_payload()).encode()

        client.post("/webhook/fathom", content=body, headers={
            "Content-Type": "application/json",
            "webhook-signature": sign(body, "whsec_test"),
        })
        client.post("/webhook/fathom", content=body, headers={
            "Content-Type": "application/json",
            "webhook-signature": "v1,bm90LXRoZS1zaWduYXR1cmU=",
        })

        assert ctx.attio.upsert_person_and_note.await_count == 1

    def test_heyreach_secret_header(self):
        ctx = make_ctx(heyreach_webhook_secret="s3cret")
        client = TestClient(create_app(WebhookRelay(ctx)))

        client.post("/webhook/heyreach", json=heyreach_payload(), headers={"X-Webhook-Secret": "s3cret"})

        assert ctx.leads.has_pending_lead(PROFILE)

    def test_pending_lead_admin_does_not_consume(self):
        self.client.post("/webhook/heyreach", json=heyreach_payload())

        for _ in range(2):
            response = self.client.get("/admin/leads/pending", params={"linkedin_url": "linkedin.com/in/johndoe"})
            assert response.json()["pending"] is True

        self.ctx.attio.find_person_by_linkedin.return_value = "person-1"
        self.client.post("/webhook/clay", json=clay_payload())

        response = self.client.get("/admin/leads/pending", params={"linkedin_url": PROFILE})
        assert response.json()["pending"] is False

    def test_metrics(self):
        self.client.post("/webhook/heyreach", json=heyreach_payload())

        assert self.client.get("/metrics").json() == {"bookings_tracked": 0, "pending_leads": 1}
