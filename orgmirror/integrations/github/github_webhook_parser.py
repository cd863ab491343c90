"""
GitHub webhook payload parser.

Turns a raw delivery (event header, JSON body, delivery id) into a
``WebhookEvent`` the dispatcher can route.
"""

from typing import Any, Dict, Optional

from orgmirror.core.exceptions import ParseError
from orgmirror.events.webhook_event import WebhookEvent
from orgmirror.utils.logger import logger


class GitHubWebhookParser:
    """
    Parses GitHub webhook payloads into ``WebhookEvent`` objects.
    """

    def get_installation_id(self, webhook_payload: Dict[str, Any]) -> Optional[int]:
        """
        Extract the installation id from a webhook payload.

        Args:
            webhook_payload: GitHub webhook payload

        Returns:
            The installation id, or None for deliveries outside an App installation
        """
        installation = webhook_payload.get("installation") or {}
        installation_id = installation.get("id")
        if installation_id is None:
            return None
        try:
            return int(installation_id)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed installation id: {installation_id!r}")
            return None

    def parse(
        self,
        event_name: Optional[str],
        webhook_payload: Any,
        delivery_id: Optional[str] = None,
    ) -> WebhookEvent:
        """
        Build a ``WebhookEvent`` from one delivery.

        Args:
            event_name: Value of the ``X-GitHub-Event`` header
            webhook_payload: Decoded JSON body
            delivery_id: Value of the ``X-GitHub-Delivery`` header

        Returns:
            The parsed event

        Raises:
            ParseError: If the event name is missing or the body is not an object
        """
        if not event_name:
            raise ParseError("Missing X-GitHub-Event header")
        if not isinstance(webhook_payload, dict):
            raise ParseError("Webhook payload must be a JSON object")

        event = WebhookEvent(
            name=event_name,
            action=webhook_payload.get("action"),
            installation_id=self.get_installation_id(webhook_payload),
            payload=webhook_payload,
            delivery_id=delivery_id,
        )
        logger.info(f"Parsed {event} (delivery {delivery_id})")
        return event
