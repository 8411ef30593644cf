"""
Entity Lookup Tables

Static name -> type tables used by the CFD builder (entity-type inference)
and the entity linker (graph labels and relationship names). They are held
by an immutable EntityLookups value that is built once and injected, so a
tenant can be given its own overrides without touching module state.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


GENERIC_ENTITY_TYPE = "entity"
GENERIC_NODE_LABEL = "Entity"
GENERIC_RELATIONSHIP = "REFERENCES"


ENTITY_TYPE_BY_FIELD = MappingProxyType({
    "merchantId": "merchant",
    "contactId": "contact",
    "taskId": "task",
    "projectId": "project",
    "calendarId": "calendar",
    "eventId": "calendarEvent",
    "threadId": "thread",
    "messageId": "message",
    "accountId": "account",
    "businessId": "business",
    "offeringId": "offering",
    "budgetId": "budget",
    "goalId": "goal",
    "transactionId": "transaction",
    "host": "domain",
    "urlHost": "domain",
    "targetHost": "domain",
    "sourceHost": "domain",
    "fromDomain": "domain",
    "toDomains": "domain",
    "tags": "tag",
    "placeId": "place",
    "searchSessionId": "searchSession",
    "claimId": "proofClaim",
    "inquiryId": "inquiry",
    "noteId": "note",
    "memoId": "memo",
    "photoId": "photo",
    "documentId": "document",
    "postId": "post",
    "fromUserId": "user",
    "ownerId": "user",
    "verifierId": "user",
    "notificationId": "notification",
    "voicemailId": "voicemail",
    "callId": "call",
    "recurringId": "recurring",
    "subscriptionId": "subscription",
    "reportId": "report",
    "subtaskId": "subtask",
    "scope": "consentScope",
    "categoryId": "category",
    "institutionId": "institution",
})


NODE_LABEL_BY_ENTITY_TYPE = MappingProxyType({
    "merchant": "Merchant",
    "contact": "Contact",
    "task": "Task",
    "project": "Project",
    "calendar": "Calendar",
    "calendarEvent": "CalendarEvent",
    "thread": "EmailThread",
    "message": "Message",
    "account": "Account",
    "business": "Business",
    "offering": "Offering",
    "budget": "Budget",
    "goal": "Goal",
    "transaction": "Transaction",
    "domain": "Domain",
    "tag": "Tag",
    "place": "Place",
    "searchSession": "SearchSession",
    "proofClaim": "ProofClaim",
    "inquiry": "Inquiry",
    "note": "Note",
    "memo": "Memo",
    "photo": "Photo",
    "document": "Document",
    "post": "Post",
    "user": "User",
    "notification": "Notification",
    "voicemail": "Voicemail",
    "call": "Call",
    "recurring": "RecurringEvent",
    "subscription": "Subscription",
    "report": "Report",
    "subtask": "Subtask",
    "consentScope": "ConsentScope",
    "category": "Category",
    "institution": "FinancialInstitution",
    GENERIC_ENTITY_TYPE: GENERIC_NODE_LABEL,
})


RELATIONSHIP_BY_ENTITY_TYPE = MappingProxyType({
    "merchant": "INVOLVES_MERCHANT",
    "contact": "INVOLVES_CONTACT",
    "task": "RELATES_TO_TASK",
    "project": "RELATES_TO_PROJECT",
    "calendar": "USES_CALENDAR",
    "calendarEvent": "REFERENCES_CALENDAR_EVENT",
    "thread": "IN_THREAD",
    "message": "REFERENCES_MESSAGE",
    "account": "USES_ACCOUNT",
    "business": "INVOLVES_BUSINESS",
    "offering": "REFERENCES_OFFERING",
    "budget": "AFFECTS_BUDGET",
    "goal": "RELATES_TO_GOAL",
    "transaction": "LINKED_TO_TRANSACTION",
    "domain": "INVOLVES_DOMAIN",
    "tag": "HAS_TAG",
    "place": "AT_PLACE",
    "searchSession": "IN_SEARCH_SESSION",
    "proofClaim": "REFERENCES_PROOF",
    "inquiry": "RELATED_TO_INQUIRY",
    "note": "REFERENCES_NOTE",
    "memo": "REFERENCES_MEMO",
    "photo": "INCLUDES_PHOTO",
    "document": "INCLUDES_DOCUMENT",
    "post": "REFERENCES_POST",
    "user": "INVOLVES_USER",
    "notification": "TRIGGERED_NOTIFICATION",
    "voicemail": "HAS_VOICEMAIL",
    "call": "PART_OF_CALL",
    "recurring": "PART_OF_RECURRING",
    "subscription": "FOR_SUBSCRIPTION",
    "report": "IN_REPORT",
    "subtask": "HAS_SUBTASK",
    "consentScope": "HAS_CONSENT_SCOPE",
    "category": "IN_CATEGORY",
    "institution": "AT_INSTITUTION",
})


def _frozen(mapping: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class EntityLookups:
    """
    Immutable lookup tables for entity inference and graph linking.

    Labels and relationship names are interpolated into Cypher, so
    overrides must only come from trusted configuration.
    """
    entity_type_by_field: Mapping[str, str] = field(default_factory=lambda: ENTITY_TYPE_BY_FIELD)
    node_label_by_entity_type: Mapping[str, str] = field(default_factory=lambda: NODE_LABEL_BY_ENTITY_TYPE)
    relationship_by_entity_type: Mapping[str, str] = field(default_factory=lambda: RELATIONSHIP_BY_ENTITY_TYPE)

    def infer_entity_type(self, field_name: str) -> str:
        """Entity type for a field name, `entity` when unmapped."""
        return self.entity_type_by_field.get(field_name, GENERIC_ENTITY_TYPE)

    def node_label(self, entity_type: str) -> str:
        return self.node_label_by_entity_type.get(entity_type, GENERIC_NODE_LABEL)

    def relationship_type(self, entity_type: str) -> str:
        return self.relationship_by_entity_type.get(entity_type, GENERIC_RELATIONSHIP)

    def with_overrides(
        self,
        entity_types: Optional[Mapping[str, str]] = None,
        node_labels: Optional[Mapping[str, str]] = None,
        relationships: Optional[Mapping[str, str]] = None
    ) -> "EntityLookups":
        """Return a new EntityLookups with the given entries layered on top."""
        return EntityLookups(
            entity_type_by_field=_frozen({**self.entity_type_by_field, **(entity_types or {})}),
            node_label_by_entity_type=_frozen({**self.node_label_by_entity_type, **(node_labels or {})}),
            relationship_by_entity_type=_frozen({**self.relationship_by_entity_type, **(relationships or {})})
        )


DEFAULT_LOOKUPS = EntityLookups()
