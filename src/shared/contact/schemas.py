"""Pydantic schemas for the contact pipeline."""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class NormalizedSubmission(BaseModel):
    """Trimmed, length-bounded contact form fields."""
    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    subject: str
    message: str


class ValidationResult(BaseModel):
    """Outcome of validating a raw submission.

    `sanitized` is set only when `errors` is empty.
    """
    model_config = ConfigDict(frozen=True)

    errors: List[str] = Field(default_factory=list)
    sanitized: Optional[NormalizedSubmission] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors


class RenderedNotification(BaseModel):
    """Notification ready to hand to the mail transport."""
    model_config = ConfigDict(frozen=True)

    html_body: str
    text_body: str
    subject_line: str
    reply_to: str
    sent_at: datetime


class Sent(BaseModel):
    """The transport accepted the message."""
    model_config = ConfigDict(frozen=True)

    receipt_id: str


class TransportUnavailable(BaseModel):
    """No transport could be built from the configuration; nothing was sent."""
    model_config = ConfigDict(frozen=True)


class TransportFailure(BaseModel):
    """The send was attempted and failed. `detail` is for logs only."""
    model_config = ConfigDict(frozen=True)

    detail: str


DispatchOutcome = Union[Sent, TransportUnavailable, TransportFailure]


class SubmissionStatus(str, Enum):
    """Terminal states of a contact submission."""
    DELIVERED = "delivered"
    REJECTED = "rejected"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


class ContactResponse(BaseModel):
    """Schema for contact form response."""
    success: bool
    message: str
    errors: Optional[List[str]] = None  # only on validation failure


class SubmissionResult(BaseModel):
    """Terminal state of a submission and the response to send back."""
    status: SubmissionStatus
    response: ContactResponse
    retry_after: Optional[int] = None  # seconds, set when rate limited
