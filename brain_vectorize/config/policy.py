"""
Embedding Policy Store

Static configuration mapping event type -> extraction policy:
- which fields are embedded as free text
- which fields are rendered as structured "field: value" text
- which fields are entity references
- which fields must never leave the event (redaction)
- modality hint and enabled flag

Policies are loaded once (built-in defaults or a JSON file) and looked up,
never mutated, at CFD-build time. Both camelCase (JSON) and snake_case
field names are accepted.
"""

import json
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..core.errors import PolicyError
from ..core.events import Modality


class ExtractionPolicy(BaseModel):
    """Extraction rules for one event type."""
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel
    )

    embed_text_fields: list[str] = Field(default_factory=list)
    embed_structured_fields: list[str] = Field(default_factory=list)
    redact_fields: list[str] = Field(default_factory=list)
    entity_ref_paths: list[str] = Field(default_factory=list)
    modality_hint: Modality = Modality.TEXT
    enabled: bool = True


class EmbeddingPolicyConfig(BaseModel):
    """Default policy plus per-event-type overrides."""
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel
    )

    version: str = "1.0.0"
    global_redact_keys: list[str] = Field(default_factory=list)
    default_policy: ExtractionPolicy = Field(default_factory=ExtractionPolicy)
    policies: dict[str, ExtractionPolicy] = Field(default_factory=dict)

    def get_policy(self, event_type: str) -> ExtractionPolicy:
        """Policy for an event type, falling back to the default policy."""
        return self.policies.get(event_type) or self.default_policy

    def should_vectorize(self, event_type: str) -> bool:
        return self.get_policy(event_type).enabled

    def is_redacted(self, policy: ExtractionPolicy, path: str) -> bool:
        """
        A path is redacted when the policy lists it explicitly or when its
        last segment is one of the global redact keys (case-insensitive).
        """
        if path in policy.redact_fields:
            return True
        last_segment = path.rsplit(".", 1)[-1].lower()
        return last_segment in {key.lower() for key in self.global_redact_keys}


DEFAULT_GLOBAL_REDACT_KEYS = [
    "password",
    "secret",
    "apiKey",
    "accessToken",
    "refreshToken",
    "ssn",
    "cardNumber",
    "cvv",
    "routingNumber",
    "accountNumber",
]


def _email_policy() -> ExtractionPolicy:
    return ExtractionPolicy(
        embed_text_fields=["payload.subject", "payload.snippetText"],
        redact_fields=["payload.fromAddress", "payload.toAddresses"],
        entity_ref_paths=["payload.threadId", "payload.messageId", "payload.fromDomain"],
        modality_hint=Modality.TEXT
    )


def _task_policy() -> ExtractionPolicy:
    return ExtractionPolicy(
        embed_text_fields=["payload.title", "payload.description"],
        embed_structured_fields=["payload.priority", "payload.status", "payload.dueDate"],
        entity_ref_paths=["payload.taskId", "payload.projectId"],
        modality_hint=Modality.TEXT
    )


DEFAULT_POLICY_CONFIG = EmbeddingPolicyConfig(
    version="1.0.0",
    global_redact_keys=DEFAULT_GLOBAL_REDACT_KEYS,
    default_policy=ExtractionPolicy(
        embed_text_fields=["payloadPreview"],
        embed_structured_fields=["eventType", "sourceApp", "domain"],
        modality_hint=Modality.TEXT,
        enabled=True
    ),
    policies={
        "finance.transaction_created": ExtractionPolicy(
            embed_text_fields=["payload.merchant", "payload.description"],
            embed_structured_fields=[
                "payload.amount",
                "payload.currency",
                "payload.category",
                "payload.type",
            ],
            entity_ref_paths=[
                "payload.merchantId",
                "payload.transactionId",
                "payload.accountId",
                "payload.categoryId",
            ],
            modality_hint=Modality.STRUCTURED
        ),
        "browser.page_viewed": ExtractionPolicy(
            embed_text_fields=["payload.title", "payload.url"],
            entity_ref_paths=["payload.host"],
            modality_hint=Modality.TEXT
        ),
        "email.message_received": _email_policy(),
        "email.message_sent": _email_policy(),
        "task.created": _task_policy(),
        "tasks.task_created": _task_policy(),
        "calendar.event_created": ExtractionPolicy(
            embed_text_fields=["payload.title", "payload.location", "payload.description"],
            entity_ref_paths=["payload.calendarId", "payload.eventId"],
            modality_hint=Modality.TEXT
        ),
        "social.post_created": ExtractionPolicy(
            embed_text_fields=["payload.textContent", "payload.tags"],
            entity_ref_paths=["payload.postId", "payload.tags"],
            modality_hint=Modality.TEXT
        ),
        "system.heartbeat": ExtractionPolicy(enabled=False),
    }
)


def load_policy_config(path: Optional[Union[str, Path]] = None) -> EmbeddingPolicyConfig:
    """
    Load a policy configuration.

    With no path the built-in configuration is returned. A file that is
    missing, is not JSON, or does not validate raises PolicyError.
    """
    if path is None:
        return DEFAULT_POLICY_CONFIG

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PolicyError(f"Cannot read policy file {path}: {e}") from e

    try:
        return EmbeddingPolicyConfig.model_validate(raw)
    except ValidationError as e:
        raise PolicyError(f"Invalid policy file {path}: {e}") from e
