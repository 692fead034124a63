"""
Contact submission pipeline.

admission check -> validation -> rendering -> dispatch, each step able to end
the submission early. Every terminal state maps to one fixed, safe response.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional

from src.shared.config.settings import Settings
from src.shared.contact.rendering import DEFAULT_SUBJECT_PREFIX, render
from src.shared.contact.schemas import (
    ContactResponse,
    Sent,
    SubmissionResult,
    SubmissionStatus,
    TransportUnavailable,
)
from src.shared.contact.transport import TransportDispatcher, create_transport
from src.shared.contact.validation import validate
from src.shared.rate_limit.rate_limit_utils import AdmissionLimiter

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Thank you! Your message has been sent successfully. I'll get back to you soon!"
VALIDATION_FAILED_MESSAGE = "Validation failed"
RATE_LIMITED_MESSAGE = "Too many messages sent. Please try again later."
UNAVAILABLE_MESSAGE = "Email service is not configured properly. Please try again later."
FAILED_MESSAGE = "Failed to send message. Please try again later or contact directly via email."

# Terminal state -> HTTP status code
HTTP_STATUS = {
    SubmissionStatus.DELIVERED: 200,
    SubmissionStatus.REJECTED: 400,
    SubmissionStatus.RATE_LIMITED: 429,
    SubmissionStatus.UNAVAILABLE: 503,
    SubmissionStatus.FAILED: 500,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ContactService:
    """Runs contact submissions through the pipeline."""

    def __init__(
        self,
        limiter: AdmissionLimiter,
        dispatcher: TransportDispatcher,
        destination: str,
        subject_prefix: str = DEFAULT_SUBJECT_PREFIX,
        clock: Callable[[], datetime] = utc_now
    ):
        self.limiter = limiter
        self.dispatcher = dispatcher
        self.destination = destination
        self.subject_prefix = subject_prefix
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContactService":
        """Wire the pipeline from settings, building the transport once."""
        limiter = AdmissionLimiter(
            window=settings.rate_limit_window,
            capacity=settings.rate_limit_max,
        )
        dispatcher = TransportDispatcher(create_transport(settings))
        return cls(
            limiter=limiter,
            dispatcher=dispatcher,
            destination=settings.recipient_email,
            subject_prefix=settings.subject_prefix,
        )

    def submit(self, raw: Mapping[str, Any], source_identity: str) -> SubmissionResult:
        """
        Process one contact form submission.

        Args:
            raw: Form fields as received
            source_identity: Caller key for rate limiting (client IP)

        Returns:
            SubmissionResult with the terminal status and the response body
        """
        now = self.clock()

        if not self.limiter.admit(source_identity, now):
            logger.warning(f"Contact form rate limit exceeded for {source_identity}")
            return SubmissionResult(
                status=SubmissionStatus.RATE_LIMITED,
                response=ContactResponse(success=False, message=RATE_LIMITED_MESSAGE),
                retry_after=self.limiter.retry_after(source_identity, now),
            )

        result = validate(raw)
        if not result.is_valid:
            logger.info(f"Contact form rejected for {source_identity}: {result.errors}")
            return self._rejected(result.errors)

        submission = result.sanitized
        notification = render(submission, now, subject_prefix=self.subject_prefix)
        outcome = self.dispatcher.dispatch(notification, self.destination)

        if isinstance(outcome, Sent):
            logger.info(
                f"✅ Contact form email sent: id={outcome.receipt_id} "
                f"from={submission.email} subject={submission.subject!r}"
            )
            return SubmissionResult(
                status=SubmissionStatus.DELIVERED,
                response=ContactResponse(success=True, message=SUCCESS_MESSAGE),
            )

        if isinstance(outcome, TransportUnavailable):
            logger.error("Contact form email not sent: no mail transport configured")
            return SubmissionResult(
                status=SubmissionStatus.UNAVAILABLE,
                response=ContactResponse(success=False, message=UNAVAILABLE_MESSAGE),
            )

        logger.error(f"❌ Contact form email failed from {submission.email}: {outcome.detail}")
        return SubmissionResult(
            status=SubmissionStatus.FAILED,
            response=ContactResponse(success=False, message=FAILED_MESSAGE),
        )

    @staticmethod
    def _rejected(errors: List[str]) -> SubmissionResult:
        return SubmissionResult(
            status=SubmissionStatus.REJECTED,
            response=ContactResponse(
                success=False,
                message=VALIDATION_FAILED_MESSAGE,
                errors=list(errors),
            ),
        )

    def health(self, now: Optional[datetime] = None) -> dict:
        """Liveness payload."""
        now = now or self.clock()
        return {
            "success": True,
            "ok": True,
            "message": "Server is running",
            "timestamp": now.isoformat(),
        }
