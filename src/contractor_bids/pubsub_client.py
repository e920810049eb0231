from __future__ import annotations

import json
import logging
from typing import Any

from google.cloud import pubsub_v1

logger = logging.getLogger(__name__)


class PubSubClient:
    """Wrapper for Google Cloud Pub/Sub operations."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        self.publisher = pubsub_v1.PublisherClient()

    def publish(
        self,
        topic_id: str,
        message: dict[str, Any],
        *,
        attributes: dict[str, str] | None = None,
    ) -> str:
        """Publish a message to a Pub/Sub topic.

        Args:
            topic_id: The topic ID (e.g., "proposal-responses")
            message: The message payload as a dictionary
            attributes: Optional message attributes

        Returns:
            Message ID from Pub/Sub
        """
        topic_path = self.publisher.topic_path(self.project_id, topic_id)
        data = json.dumps(message).encode("utf-8")
        future = self.publisher.publish(topic_path, data, **(attributes or {}))
        message_id = future.result()

        logger.info(
            "Published message to Pub/Sub",
            extra={"topic_id": topic_id, "message_id": message_id, "attributes": attributes},
        )
        return message_id

    def publish_proposal_response(
        self,
        topic_id: str,
        *,
        bid_id: str,
        response_type: str,
        recipient: str,
        subject: str,
        body: str,
    ) -> str:
        """Publish an owner notification about a client's proposal response.

        Returns:
            Message ID from Pub/Sub
        """
        message = {
            "bid_id": bid_id,
            "response_type": response_type,
            "to": recipient,
            "subject": subject,
            "body": body,
        }
        attributes = {
            "bid_id": bid_id,
            "event_type": "proposal_response",
            "response_type": response_type,
        }
        return self.publish(topic_id, message, attributes=attributes)


__all__ = ["PubSubClient"]
