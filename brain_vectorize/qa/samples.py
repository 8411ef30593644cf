"""
Sample Event Generators

Synthetic RawEvents for each built-in event type. Every call produces a
fresh event id so repeated QA runs against the same store never collide
on the idempotency gate.
"""

from typing import Callable
from uuid import uuid4

from ..core.events import PrivacyScope, RawEvent, now_ms


SAMPLE_USER_ID = "user_test123"
DAY_MS = 86_400_000


def _suffix() -> str:
    return uuid4().hex[:12]


def _event(event_type: str, source_app: str, payload: dict, preview: str,
           privacy_scope: PrivacyScope = PrivacyScope.PRIVATE) -> RawEvent:
    suffix = _suffix()
    timestamp = now_ms()
    return RawEvent(
        event_id=f"test_{event_type.split('.')[-1]}_{suffix}",
        trace_id=f"trace_{suffix}",
        user_id=SAMPLE_USER_ID,
        event_type=event_type,
        source_app=source_app,
        domain=event_type.split(".")[0],
        timestamp_ms=timestamp,
        received_at_ms=timestamp,
        privacy_scope=privacy_scope,
        consent_version="1.0",
        payload=payload,
        payload_preview=preview
    )


def finance_transaction() -> RawEvent:
    suffix = _suffix()
    return _event(
        "finance.transaction_created",
        "ios-finance",
        {
            "transactionId": f"txn_{suffix}",
            "merchantId": f"merchant_{suffix}",
            "amount": 42.50,
            "currency": "USD",
            "merchant": "Coffee Shop",
            "merchantNormalized": "coffee_shop",
            "category": "food_and_drink",
            "subcategory": "coffee",
            "type": "debit",
        },
        "Coffee Shop $42.50"
    )


def browser_page_view() -> RawEvent:
    return _event(
        "browser.page_viewed",
        "ios-browser",
        {
            "url": "https://example.com/article/tech-news",
            "host": "example.com",
            "title": "Latest Technology News",
            "sessionId": f"session_{_suffix()}",
            "durationMs": 30000,
        },
        "Latest Technology News - example.com"
    )


def email_received() -> RawEvent:
    suffix = _suffix()
    return _event(
        "email.message_received",
        "ios-email",
        {
            "messageId": f"msg_{suffix}",
            "threadId": f"thread_{suffix}",
            "subject": "Meeting Tomorrow at 3pm",
            "fromAddress": "colleague@company.com",
            "toAddresses": ["user@example.com"],
            "snippetText": "Hi, can we meet tomorrow at 3pm to discuss the project?",
        },
        "Meeting Tomorrow at 3pm"
    )


def task_created() -> RawEvent:
    return _event(
        "task.created",
        "ios-productivity",
        {
            "taskId": f"task_{_suffix()}",
            "title": "Review quarterly report",
            "description": "Review and approve the Q4 financial report before Friday",
            "priority": "high",
            "status": "pending",
            "dueDate": now_ms() + DAY_MS * 3,
        },
        "Review quarterly report"
    )


def calendar_event_created() -> RawEvent:
    start = now_ms() + DAY_MS
    return _event(
        "calendar.event_created",
        "ios-calendar",
        {
            "calendarId": "cal_primary",
            "eventId": f"cal_evt_{_suffix()}",
            "title": "Quarterly planning session",
            "location": "Conference Room B",
            "description": "Plan roadmap priorities for next quarter",
            "startTime": start,
            "endTime": start + 3_600_000,
            "attendeeCount": 6,
        },
        "Quarterly planning session"
    )


def social_post_created() -> RawEvent:
    return _event(
        "social.post_created",
        "orion-social",
        {
            "postId": f"post_{_suffix()}",
            "postType": "text",
            "textContent": "Just launched my new project! Check it out at example.com",
            "tags": ["launch", "project", "tech"],
        },
        "Just launched my new project!",
        privacy_scope=PrivacyScope.SOCIAL
    )


def system_heartbeat() -> RawEvent:
    return _event("system.heartbeat", "sweeper", {"status": "ok"}, "heartbeat")


SAMPLE_EVENTS: dict[str, Callable[[], RawEvent]] = {
    "finance.transaction_created": finance_transaction,
    "browser.page_viewed": browser_page_view,
    "email.message_received": email_received,
    "task.created": task_created,
    "calendar.event_created": calendar_event_created,
    "social.post_created": social_post_created,
    "system.heartbeat": system_heartbeat,
}
