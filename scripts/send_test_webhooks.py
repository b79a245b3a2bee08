#!/usr/bin/env python3
"""
Smoke script: fire sample webhooks at a running Meeting & Lead Relay.

Usage: python scripts/send_test_webhooks.py [base_url]
"""

import sys
import time
import uuid

import requests

DEFAULT_BASE_URL = "http://localhost:3000"


def post_webhook(base_url, path, payload, headers=None):
    """POST one webhook and check it is acknowledged."""
    try:
        response = requests.post(f"{base_url}{path}", json=payload, headers=headers or {}, timeout=30)
        if response.status_code == 200 and response.json().get("received"):
            print(f"✅ {path} acknowledged")
            return True
        print(f"❌ {path} failed: {response.status_code}")
        print(f"Response: {response.text}")
        return False
    except requests.exceptions.RequestException as e:
        print(f"❌ {path} error: {e}")
        return False


def check_get(base_url, path, params=None):
    try:
        response = requests.get(f"{base_url}{path}", params=params, timeout=10)
        if response.status_code == 200:
            print(f"✅ {path}: {response.json()}")
            return True
        print(f"❌ {path} failed: {response.status_code}")
        return False
    except requests.exceptions.RequestException as e:
        print(f"❌ {path} error: {e}")
        return False


def calendly_booking(event_uuid):
    return {
        "event": "invitee.created",
        "payload": {
            "email": "smoke.guest@example.com",
            "name": "Smoke Guest",
            "scheduled_event": {
                "uri": f"https://api.calendly.com/scheduled_events/{event_uuid}",
                "start_time": "2024-01-15T10:00:00Z",
                "end_time": "2024-01-15T10:30:00Z",
                "location": {"type": "zoom", "join_url": "https://zoom.us/j/555000111"},
            },
        },
    }


def fathom_recording():
    return {
        "id": "smoke-meeting",
        "title": "Smoke test call",
        "meeting_url": "https://zoom.us/j/555000111",
        "start_time": "2024-01-15T10:02:00Z",
        "attendees": [{"name": "Smoke Guest", "email": "smoke.guest@example.com", "is_external": True}],
        "transcript": [
            {"speaker": "Host", "text": "Thanks for taking the time today.", "start_time": 0},
            {"speaker": "Smoke Guest", "text": "Happy to, we want to tidy up our follow-up process.", "start_time": 4},
        ],
    }


def heyreach_lead():
    return {
        "tag": "interested",
        "lead": {
            "first_name": "Smoke",
            "last_name": "Lead",
            "linkedin_url": "https://www.linkedin.com/in/smoke-lead/",
            "company": "Example Inc",
            "title": "Head of Sales",
        },
        "messages": [
            {"sender": "Me", "text": "Open to a quick chat?", "sent_at": "2024-01-10T09:00:00Z"},
            {"sender": "Smoke Lead", "text": "Sure, send over some times.", "sent_at": "2024-01-10T10:00:00Z"},
        ],
    }


def clay_enrichment():
    return {
        "data": {
            "LinkedIn URL": "linkedin.com/in/smoke-lead",
            "Work Email": "smoke.lead@example.com",
            "Mobile Phone": "+1 555 0100",
        }
    }


def main():
    """Run all checks."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_BASE_URL

    print("🚀 Testing Meeting & Lead Relay")
    print("=" * 50)

    # Wait for app to start
    print("⏳ Waiting for application to start...")
    time.sleep(5)

    checks = [
        ("Health Check", lambda: check_get(base_url, "/health")),
        ("Calendly Booking", lambda: post_webhook(base_url, "/webhook/calendly", calendly_booking(uuid.uuid4().hex))),
        ("Fathom Recording", lambda: post_webhook(base_url, "/webhook/fathom", fathom_recording())),
        ("HeyReach Lead", lambda: post_webhook(base_url, "/webhook/heyreach", heyreach_lead())),
        ("Pending Lead", lambda: check_get(base_url, "/admin/leads/pending",
                                           {"linkedin_url": "linkedin.com/in/smoke-lead"})),
        ("Clay Enrichment", lambda: post_webhook(base_url, "/webhook/clay", clay_enrichment())),
        ("Metrics Endpoint", lambda: check_get(base_url, "/metrics")),
    ]

    passed = 0
    for name, check in checks:
        print(f"\n🧪 Running {name}...")
        if check():
            passed += 1
        else:
            print(f"❌ {name} failed")

    print("\n" + "=" * 50)
    print(f"📊 Results: {passed}/{len(checks)} checks passed")

    if passed == len(checks):
        print("🎉 All webhooks acknowledged. Check the logs for workflow outcomes.")
        return 0
    print("⚠️  Some checks failed. Check the application logs for details.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
