"""Push notification transports."""

import logging
from enum import StrEnum
from typing import Protocol

import httpx
from pydantic import BaseModel, Field

from hearth.core.config import Settings, constants
from hearth.domain.member import PushSubscription


logger = logging.getLogger(__name__)


class SendStatus(StrEnum):
    """Outcome of a single push delivery."""

    SUCCESS = "success"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    FAILED = "failed"


class SendResult(BaseModel):
    """Result of sending one push notification."""

    status: SendStatus = Field(..., description="Delivery outcome")
    status_code: int | None = Field(None, description="HTTP status code returned by the transport")
    error: str | None = Field(None, description="Error message if failed")

    @property
    def success(self) -> bool:
        return self.status == SendStatus.SUCCESS

    @classmethod
    def ok(cls) -> "SendResult":
        return cls(status=SendStatus.SUCCESS)

    @classmethod
    def expired(cls, status_code: int | None = None) -> "SendResult":
        return cls(status=SendStatus.SUBSCRIPTION_EXPIRED, status_code=status_code)

    @classmethod
    def failed(cls, error: str, status_code: int | None = None) -> "SendResult":
        return cls(status=SendStatus.FAILED, status_code=status_code, error=error)


class NotificationSender(Protocol):
    async def send(self, *, subscription: PushSubscription, title: str, body: str) -> SendResult: ...


class LoggingNotificationSender:
    """Writes notifications to the log instead of delivering them."""

    async def send(self, *, subscription: PushSubscription, title: str, body: str) -> SendResult:
        logger.info(
            "Push notification",
            extra={"member_id": str(subscription.member_id), "endpoint": subscription.endpoint, "title": title},
        )
        return SendResult.ok()


class WebhookNotificationSender:
    """Delivers notifications by POSTing them to a push gateway.

    The gateway answers 404 or 410 for subscriptions that no longer exist.
    """

    def __init__(self, *, url: str, token: str | None = None, timeout: float | None = None) -> None:
        self._url = url
        self._token = token
        self._timeout = timeout or constants.API_TIMEOUT_SECONDS

    async def send(self, *, subscription: PushSubscription, title: str, body: str) -> SendResult:
        payload = {"endpoint": subscription.endpoint, "title": title, "body": body}
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            return SendResult.failed(f"Transport error: {e!s}")

        if response.is_success:
            return SendResult.ok()
        if response.status_code in (constants.HTTP_NOT_FOUND, constants.HTTP_GONE):
            return SendResult.expired(response.status_code)
        return SendResult.failed(response.text, response.status_code)


def build_notification_sender(settings: Settings) -> NotificationSender:
    """Use the webhook transport when configured, otherwise log notifications.

    Raises:
        ValueError: If a webhook URL is configured without its token
    """
    if settings.notification_webhook_url:
        return WebhookNotificationSender(
            url=settings.notification_webhook_url,
            token=settings.require_credential("notification_webhook_token", "Notification webhook"),
        )
    logger.info("No notification webhook configured, notifications will only be logged")
    return LoggingNotificationSender()
