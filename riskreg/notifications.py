"""Fire-and-forget notification sinks.

The workflow only emits events; delivery (email, push, chat) happens behind
the webhook. Failures are logged and never reach the caller.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol

import httpx
import orjson

from riskreg.logging_config import get_logger
from riskreg.settings import Settings

logger = get_logger(name=__name__)


class NotificationType(str, Enum):
    APPROVAL_REQUEST = "approval-request"
    APPROVAL_RESULT = "approval-result"
    TEST_ASSIGNED = "test-assigned"


class NotificationSink(Protocol):
    def notify(self, event_type: NotificationType, recipient_id: str, data: Mapping[str, Any]) -> None:
        ...


def build_payload(event_type: NotificationType, recipient_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "type": NotificationType(event_type).value,
        "recipientId": recipient_id,
        "data": {key: value for key, value in data.items() if value is not None},
    }


class LoggingNotificationSink:
    """Writes notifications to the log; used when no webhook is configured."""

    def notify(self, event_type: NotificationType, recipient_id: str, data: Mapping[str, Any]) -> None:
        payload = build_payload(event_type, recipient_id, data)
        logger.info("Notification {} -> {}: {}", payload["type"], recipient_id, payload["data"])


class WebhookNotificationSink:
    """POSTs each notification to a webhook from a small thread pool."""

    def __init__(self, url: str, timeout: float = 5.0, max_workers: int = 2):
        self.url = url
        self._timeout = httpx.Timeout(timeout, connect=min(timeout, 3.0))
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")

    def notify(self, event_type: NotificationType, recipient_id: str, data: Mapping[str, Any]) -> Future:
        payload = build_payload(event_type, recipient_id, data)
        return self._executor.submit(self._deliver, payload)

    def _deliver(self, payload: Dict[str, Any]) -> bool:
        try:
            response = httpx.post(
                self.url,
                content=orjson.dumps(payload),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except httpx.TimeoutException:
            logger.warning("Notification {} to {} timed out", payload["type"], payload["recipientId"])
            return False
        except httpx.HTTPError as exc:
            logger.warning("Notification {} to {} failed: {}", payload["type"], payload["recipientId"], exc)
            return False

        if response.status_code >= 400:
            logger.error("Notification webhook returned {}: {}", response.status_code, response.text)
            return False
        return True

    def close(self) -> None:
        self._executor.shutdown(wait=True)


class Notifier:
    """Emits the workflow's notification events to a sink."""

    def __init__(self, sink: NotificationSink, manager_ids: Optional[List[str]] = None):
        self.sink = sink
        self.manager_ids = list(manager_ids or [])

    def _send(self, event_type: NotificationType, recipient_id: str, data: Mapping[str, Any]) -> None:
        try:
            self.sink.notify(event_type, recipient_id, data)
        except Exception:
            logger.exception("Notification sink failed for {} -> {}", event_type.value, recipient_id)

    def approval_requested(self, entity_type: str, entity_name: str, change_type: str, submitted_by: str) -> None:
        for manager_id in self.manager_ids:
            self._send(
                NotificationType.APPROVAL_REQUEST,
                manager_id,
                {
                    "entityType": entity_type,
                    "entityName": entity_name,
                    "changeType": change_type,
                    "submitterName": submitted_by,
                },
            )

    def approval_resolved(
        self,
        submitted_by: str,
        entity_name: str,
        result: str,
        reviewer: str,
        rejection_reason: Optional[str] = None,
    ) -> None:
        self._send(
            NotificationType.APPROVAL_RESULT,
            submitted_by,
            {
                "entityName": entity_name,
                "result": result,
                "reviewerName": reviewer,
                "rejectionReason": rejection_reason,
            },
        )

    def tester_assigned(self, tester_id: Optional[str], previous_tester_id: Optional[str], control_name: str) -> None:
        # Only when assigning, not clearing, and only to a different tester
        if not tester_id or tester_id == previous_tester_id:
            return
        self._send(NotificationType.TEST_ASSIGNED, tester_id, {"controlName": control_name})


def build_notification_sink(settings: Settings) -> NotificationSink:
    if settings.notification_webhook_url:
        return WebhookNotificationSink(
            settings.notification_webhook_url,
            timeout=settings.notification_timeout_seconds,
        )
    return LoggingNotificationSink()
