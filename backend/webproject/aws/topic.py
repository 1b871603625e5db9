from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

EMAIL_PROTOCOL = "email"


class NotificationTopic:
    """SNS topic that fans upload notifications out to e-mail subscribers."""

    def __init__(self, client: Any, topic_arn: str) -> None:
        self.client = client
        self.topic_arn = topic_arn

    def publish(
        self,
        subject: str,
        message: str,
        attributes: dict[str, dict[str, str]] | None = None,
    ) -> str:
        params: dict[str, Any] = {
            "TopicArn": self.topic_arn,
            "Subject": subject,
            "Message": message,
        }
        if attributes:
            params["MessageAttributes"] = attributes
        resp = self.client.publish(**params)
        return resp["MessageId"]

    def subscribe_email(self, email: str) -> str:
        resp = self.client.subscribe(
            TopicArn=self.topic_arn,
            Protocol=EMAIL_PROTOCOL,
            Endpoint=email,
            ReturnSubscriptionArn=True,
        )
        arn = resp.get("SubscriptionArn", "")
        logger.info("Email subscription requested (arn=%s)", arn)
        return arn

    def list_subscriptions(self) -> list[dict[str, Any]]:
        subs: list[dict[str, Any]] = []
        paginator = self.client.get_paginator("list_subscriptions_by_topic")
        for page in paginator.paginate(TopicArn=self.topic_arn):
            subs.extend(page.get("Subscriptions") or [])
        return subs

    def find_email_subscription(self, email: str) -> dict[str, Any] | None:
        for sub in self.list_subscriptions():
            if sub.get("Protocol") == EMAIL_PROTOCOL and sub.get("Endpoint") == email:
                return sub
        return None

    def unsubscribe_email(self, email: str) -> str | None:
        """Removes the e-mail subscription; returns its ARN or None when there is none."""
        sub = self.find_email_subscription(email)
        if sub is None:
            return None
        arn = sub["SubscriptionArn"]
        # still waiting for the recipient to confirm: SNS has no real ARN to remove yet
        if arn == "PendingConfirmation":
            logger.info("Subscription for endpoint is pending confirmation, nothing to remove")
            return arn
        self.client.unsubscribe(SubscriptionArn=arn)
        logger.info("Email unsubscribed (arn=%s)", arn)
        return arn
