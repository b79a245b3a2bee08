from datetime import datetime, timezone
from typing import Dict, Any, Optional
from loguru import logger
from slack_sdk.webhook.async_client import AsyncWebhookClient


class SlackNotifier:
    """Slack incoming-webhook integration for sync failure alerts."""

    def __init__(self, webhook_url: Optional[str]):
        self.webhook_url = webhook_url

        if not self.webhook_url:
            logger.warning("No Slack webhook URL provided, failure alerts disabled")

    async def send_error(self, step: str, error: BaseException, source: str = "Attio Sync") -> bool:
        """
        Send a failure alert. Never raises: a failed alert is only logged.

        Args:
            step: Workflow step that failed
            error: The exception raised at that step
            source: Which integration failed (used in the header)

        Returns:
            True if Slack accepted the message
        """
        if not self.webhook_url:
            logger.info("Slack webhook not configured, skipping notification")
            return False

        message = self._build_error_message(step, error, source)

        try:
            client = AsyncWebhookClient(self.webhook_url)
            response = await client.send(text=message["text"], blocks=message["blocks"])
            if response.status_code != 200:
                logger.error(f"Slack notification rejected: {response.status_code} {response.body}")
                return False

            logger.info(f"Slack notification sent for failed step {step}")
            return True

        except Exception as e:
            logger.error(f"Failed to send Slack notification: {e}")
            return False

    def _build_error_message(self, step: str, error: BaseException, source: str) -> Dict[str, Any]:
        """Build Slack message for a failed sync."""
        title = f"❌ {source} Failed"

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": title,
                    "emoji": True
                }
            },
            {
                "type": "section",
                "fields": [
                    {
                        "type": "mrkdwn",
                        "text": f"*Step:*\n{step}"
                    },
                    {
                        "type": "mrkdwn",
                        "text": f"*Time:*\n{datetime.now(timezone.utc).isoformat()}"
                    }
                ]
            },
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Error:*\n```{error}```"
                }
            }
        ]

        return {"text": title, "blocks": blocks}
