"""
Outbound webhook sender.

Posts every outgoing message as JSON to a chat adapter's HTTP endpoint.
Configured under ``services.webhook`` in settings.yaml::

    services:
      webhook:
        url: https://chat.example.com/hooks/bot
        secret: ${CHATPIPE_WEBHOOK_SECRET:}
        services: [groupme, slack]    # optional; default is every service
        timeout_seconds: 10
"""

import json
import logging
from typing import Any

import httpx

from chatpipe.core.exceptions import ConfigurationError
from chatpipe.core.signatures import SIGNATURE_HEADER, sign_payload
from chatpipe.models.message import Message
from chatpipe.pipeline.processors import Sender

logger = logging.getLogger(__name__)

CONFIG_KEY = "webhook"
DEFAULT_TIMEOUT = 10.0


class WebhookSender(Sender):
    """Delivers messages by POSTing them to the configured URL."""

    def handles(self, message: Message) -> bool:
        services = self.bot.config.service_config(CONFIG_KEY).get("services")
        return not services or message.service in services

    async def process(self, message: Message):
        if not self.handles(message):
            return None

        config = self.bot.config.service_config(CONFIG_KEY)
        url = config.get("url")
        if not url:
            raise ConfigurationError("services.webhook.url is not set")

        body = json.dumps(message.to_dict()).encode()
        headers = {"Content-Type": "application/json"}
        secret = config.get("secret")
        if secret:
            headers[SIGNATURE_HEADER] = sign_payload(body, secret)

        timeout = float(config.get("timeout_seconds", DEFAULT_TIMEOUT))
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, content=body, headers=headers)
            response.raise_for_status()

        logger.debug(f"Delivered message to {url} ({response.status_code})")
        return self.stop_processing("delivered")


def register_into(bot: Any) -> None:
    """Register the webhook sender."""
    bot.use(WebhookSender)
