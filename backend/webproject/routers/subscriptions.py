from __future__ import annotations

import logging

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator

from webproject.aws.topic import NotificationTopic
from webproject.deps import get_notification_topic

router = APIRouter(prefix="/api", tags=["subscriptions"])
log = logging.getLogger(__name__)


class EmailIn(BaseModel):
    email: str | None = None

    @field_validator("email")
    @classmethod
    def _v_email(cls, v: str | None) -> str | None:
        v = (v or "").strip()
        if v and ("@" not in v or v.startswith("@") or v.endswith("@")):
            raise ValueError("bad_email")
        return v or None


class SubscribeOut(BaseModel):
    message: str
    email: str
    subscriptionArn: str


class UnsubscribeOut(BaseModel):
    message: str
    email: str


def _require_email(body: EmailIn) -> str:
    if not body.email:
        raise HTTPException(400, "Email address is required")
    return body.email


@router.post("/subscribe", response_model=SubscribeOut)
def subscribe(body: EmailIn, topic: NotificationTopic = Depends(get_notification_topic)) -> SubscribeOut:
    email = _require_email(body)
    try:
        arn = topic.subscribe_email(email)
    except (ClientError, BotoCoreError) as e:
        log.error("Subscription error: %s", e)
        raise HTTPException(500, f"Error subscribing email: {e}") from e
    return SubscribeOut(
        message="Subscription successful! Please check your email for a confirmation message.",
        email=email,
        subscriptionArn=arn,
    )


@router.post("/unsubscribe", response_model=UnsubscribeOut)
def unsubscribe(body: EmailIn, topic: NotificationTopic = Depends(get_notification_topic)) -> UnsubscribeOut:
    email = _require_email(body)
    try:
        arn = topic.unsubscribe_email(email)
    except (ClientError, BotoCoreError) as e:
        log.error("Unsubscription error: %s", e)
        raise HTTPException(500, f"Error unsubscribing email: {e}") from e
    if arn is None:
        raise HTTPException(404, "No active subscription found for this email address")
    return UnsubscribeOut(message="Successfully unsubscribed from notifications", email=email)
