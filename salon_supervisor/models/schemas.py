from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RequestStatus(str, Enum):
    """Help request lifecycle states"""
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    UNRESOLVED = "UNRESOLVED"


class AnswerSource(str, Enum):
    KNOWLEDGE_BASE = "knowledge_base"
    ESCALATED = "escalated"


class CustomerInfo(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class HelpRequest(BaseModel):
    id: str
    question: str
    customer_info: CustomerInfo = Field(default_factory=CustomerInfo)
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime
    timeout_at: datetime
    resolved_at: Optional[datetime] = None
    supervisor_response: Optional[str] = None
    agent_session_id: Optional[str] = None


class KnowledgeEntryCreate(BaseModel):
    question_key: str
    question_text: str
    answer_text: str
    source_help_request_id: Optional[str] = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    source: str = "supervisor"


class KnowledgeEntry(KnowledgeEntryCreate):
    id: str
    created_at: datetime


class CallReceived(BaseModel):
    session_id: str = Field(..., min_length=1)
    question: str
    customer_info: CustomerInfo = Field(default_factory=CustomerInfo)


class CallOutcome(BaseModel):
    answer_text: str
    source: AnswerSource
    help_request_id: Optional[str] = None


class Resolution(BaseModel):
    help_request: HelpRequest
    knowledge_entry: KnowledgeEntry


class ResolveRequestBody(BaseModel):
    supervisor_response: Optional[str] = None


class KBEntry(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class KBSearch(BaseModel):
    question: str


class TokenRequest(BaseModel):
    roomName: str
    participantName: str
    participantIdentity: Optional[str] = None
