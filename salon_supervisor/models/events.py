"""
Notification events pushed to dashboard observers

Each event kind has exactly one payload shape; NotificationEvent is the
union discriminated on ``type``.
"""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from .schemas import HelpRequest, KnowledgeEntry, utc_now


class CustomerFollowUp(BaseModel):
    session_id: str
    message: str
    timestamp: datetime = Field(default_factory=utc_now)


class SubscriptionAck(BaseModel):
    message: str = "Successfully subscribed to notifications"


class HelpRequestCreatedEvent(BaseModel):
    type: Literal["help_request_created"] = "help_request_created"
    data: HelpRequest
    timestamp: datetime = Field(default_factory=utc_now)


class HelpRequestUpdatedEvent(BaseModel):
    type: Literal["help_request_updated"] = "help_request_updated"
    data: HelpRequest
    timestamp: datetime = Field(default_factory=utc_now)


class KnowledgeUpdatedEvent(BaseModel):
    type: Literal["knowledge_updated"] = "knowledge_updated"
    data: KnowledgeEntry
    timestamp: datetime = Field(default_factory=utc_now)


class CustomerFollowUpEvent(BaseModel):
    type: Literal["customer_followup"] = "customer_followup"
    data: CustomerFollowUp
    timestamp: datetime = Field(default_factory=utc_now)


class SubscribedEvent(BaseModel):
    type: Literal["subscribed"] = "subscribed"
    data: SubscriptionAck = Field(default_factory=SubscriptionAck)
    timestamp: datetime = Field(default_factory=utc_now)


NotificationEvent = Annotated[
    Union[
        HelpRequestCreatedEvent,
        HelpRequestUpdatedEvent,
        KnowledgeUpdatedEvent,
        CustomerFollowUpEvent,
        SubscribedEvent,
    ],
    Field(discriminator="type"),
]


class ClientMessage(BaseModel):
    """Inbound message from an observer; only ``subscribe`` is understood"""
    type: str
    data: dict = Field(default_factory=dict)
