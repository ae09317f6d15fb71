"""Post-commit status notifications.

Sends are sequential with a fixed pause between consecutive messages so the
mail provider is never hit in bursts. A failure on one recipient is recorded
and the loop moves on to the next.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from flask import current_app, render_template

from abstract_portal.services.errors import DispatchError
from abstract_portal.services.statistics import percent
from abstract_portal.utils.logging_utils import get_logger, log_context

logger = get_logger("notification")

_STATUS_TEXT = {
    "approved": "APPROVED",
    "rejected": "NOT ACCEPTED",
    "pending": "RETURNED TO REVIEW",
    "final_submitted": "FINAL SUBMISSION RECEIVED",
}


@dataclass(frozen=True)
class NotificationTarget:
    abstract_id: int
    email: Optional[str]
    presenter_name: Optional[str]
    title: str
    category: Optional[str] = None
    institution: Optional[str] = None
    abstract_number: Optional[str] = None


@dataclass
class DeliveryResult:
    abstract_id: Optional[int]
    recipient: Optional[str]
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class DispatchSummary:
    results: List[DeliveryResult] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for item in self.results if item.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.sent

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_rate(self) -> float:
        return percent(self.sent, self.total)

    @property
    def errors(self) -> List[str]:
        return [
            f"{item.recipient}: {item.error}" if item.recipient else item.error
            for item in self.results
            if not item.success
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "total": self.total,
            "successRate": self.success_rate,
            "results": [asdict(item) for item in self.results],
        }


def _status_value(status) -> str:
    return getattr(status, "value", status)


def render_status_email(target: NotificationTarget, status, comments: Optional[str]) -> Tuple[str, str, str]:
    """Return ``(subject, html, text)`` for a status notification."""

    status = _status_value(status)
    config = current_app.config
    status_text = _STATUS_TEXT.get(status, status.upper())
    reference = target.abstract_number or target.abstract_id
    subject = f"Abstract Review {status_text}: {reference} | {config['CONFERENCE_NAME']}"
    context = {
        "subject": subject,
        "target": target,
        "status": status,
        "status_text": status_text,
        "comments": comments,
        "review_date": datetime.now(timezone.utc).strftime("%d/%m/%Y"),
        "conference_name": config["CONFERENCE_NAME"],
        "contact_email": config["CONFERENCE_CONTACT_EMAIL"],
        "website": config.get("CONFERENCE_WEBSITE"),
    }
    html = render_template("email/status_update.html", **context)
    text = render_template("email/status_update.txt", **context)
    return subject, html, text


class NotificationDispatcher:
    def __init__(
        self,
        transport,
        *,
        send_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        renderer: Callable[..., Tuple[str, str, str]] = render_status_email,
    ):
        self.transport = transport
        self.send_delay = send_delay
        self.sleep = sleep
        self.renderer = renderer

    @classmethod
    def from_app(cls, app=None, **overrides) -> "NotificationDispatcher":
        from abstract_portal.utils.services.mail import get_mail_transport

        app = app or current_app
        kwargs = {"send_delay": app.config.get("NOTIFICATION_SEND_DELAY_MS", 500) / 1000.0}
        kwargs.update(overrides)
        return cls(get_mail_transport(app), **kwargs)

    def _send(self, target: NotificationTarget, status, comments: Optional[str]):
        if not target.email:
            raise DispatchError(f"No email address on record for abstract {target.abstract_id}")
        subject, html, text = self.renderer(target, status, comments)
        outcome = self.transport.send(target.email, subject, html, text)
        if not outcome.success:
            raise DispatchError(outcome.error or "Send failed")
        return outcome

    def _deliver(self, target: NotificationTarget, status, comments: Optional[str]) -> DeliveryResult:
        try:
            outcome = self._send(target, status, comments)
        except DispatchError as exc:
            logger.warning(
                "Notification not delivered abstract_id=%s to=%s error=%s",
                target.abstract_id,
                target.email,
                exc.message,
            )
            return DeliveryResult(target.abstract_id, target.email, False, error=exc.message)
        except Exception as exc:
            logger.exception("Notification failed abstract_id=%s to=%s", target.abstract_id, target.email)
            return DeliveryResult(target.abstract_id, target.email, False, error=str(exc) or exc.__class__.__name__)

        return DeliveryResult(target.abstract_id, target.email, True, message_id=outcome.message_id)

    def notify(self, target: NotificationTarget, status, comments: Optional[str] = None) -> DeliveryResult:
        with log_context(abstract_id=target.abstract_id, status=_status_value(status)):
            return self._deliver(target, status, comments)

    def notify_bulk(
        self,
        targets: Sequence[NotificationTarget],
        status,
        comments: Optional[str] = None,
    ) -> DispatchSummary:
        summary = DispatchSummary()
        with log_context(action="notify_bulk", status=_status_value(status)):
            logger.info("Dispatching %s notification(s)", len(targets))
            for index, target in enumerate(targets):
                if index and self.send_delay > 0:
                    self.sleep(self.send_delay)
                summary.results.append(self._deliver(target, status, comments))
            logger.info(
                "Dispatch finished sent=%s failed=%s rate=%s",
                summary.sent,
                summary.failed,
                summary.success_rate,
            )
        return summary

    def send_test(self, email: str) -> DeliveryResult:
        config = current_app.config
        subject = f"{config['CONFERENCE_NAME']} Email System Test"
        text = (
            f"This is a test email from the {config['CONFERENCE_NAME']} abstract submission system.\n"
            f"Sent at {datetime.now(timezone.utc).isoformat()}.\n"
        )
        html = f"<p>{text}</p>"
        try:
            outcome = self.transport.send(email, subject, html, text)
        except Exception as exc:
            logger.exception("Test email failed to=%s", email)
            return DeliveryResult(None, email, False, error=str(exc))
        return DeliveryResult(
            None,
            email,
            outcome.success,
            message_id=outcome.message_id,
            error=None if outcome.success else (outcome.error or "Send failed"),
        )
