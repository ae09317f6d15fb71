from dataclasses import dataclass
from typing import Optional

import requests
from flask import current_app

from abstract_portal.utils.logging_utils import get_logger

logger = get_logger("mail")


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


class RestMailTransport:
    """
    Send email through a REST JSON endpoint.

    When ``enabled`` is False (``MAIL_FLAG`` off) nothing leaves the process;
    the send is logged and reported as successful.
    """

    def __init__(
        self,
        api_url: str,
        token: Optional[str],
        *,
        sender: Optional[str] = None,
        timeout: int = 10,
        enabled: bool = True,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url
        self.token = token
        self.sender = sender
        self.timeout = timeout
        self.enabled = enabled
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "RestMailTransport":
        return cls(
            config.get("MAIL_API_URL", ""),
            config.get("MAIL_API_TOKEN"),
            sender=config.get("MAIL_DEFAULT_SENDER"),
            timeout=config.get("MAIL_API_TIMEOUT", 10),
            enabled=config.get("MAIL_FLAG", True),
        )

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> SendResult:
        if not to or not subject or not (html or text):
            logger.warning("send: missing recipient, subject or body to=%s", to)
            return SendResult(False, error="Missing recipient, subject or body", status_code=400)

        if not self.enabled:
            logger.info("send: skipped (MAIL_FLAG disabled) to=%s subject=%r", to, subject)
            return SendResult(True, status_code=200)

        if not self.api_url or not self.token:
            logger.error("send: mail API not configured (MAIL_API_URL / MAIL_API_TOKEN)")
            return SendResult(False, error="Mail service not configured", status_code=503)

        payload = {"to": to, "subject": subject, "html": html, "text": text}
        if self.sender:
            payload["from"] = self.sender
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

        try:
            logger.debug("send: POST %s to=%s", self.api_url, to)
            resp = self.session.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("send: request exception to=%s err=%s", to, exc, exc_info=True)
            return SendResult(False, error=str(exc), status_code=500)

        if resp.status_code >= 300:
            snippet = (resp.text or "")[:300]
            logger.warning("send: upstream failure status=%s body=%r to=%s", resp.status_code, snippet, to)
            return SendResult(False, error=f"Mail API returned {resp.status_code}", status_code=resp.status_code)

        message_id = None
        try:
            body = resp.json()
            if isinstance(body, dict):
                message_id = body.get("messageId") or body.get("id")
        except ValueError:
            pass
        logger.info("send: sent to=%s status=%s message_id=%s", to, resp.status_code, message_id)
        return SendResult(True, message_id=message_id, status_code=resp.status_code)


def get_mail_transport(app=None):
    """Return the transport registered on the app, building the default one if needed."""

    app = app or current_app
    transport = app.extensions.get("mail_transport")
    if transport is None:
        transport = RestMailTransport.from_config(app.config)
        app.extensions["mail_transport"] = transport
    return transport
