"""
email_sender.py — Transactional email via the Resend HTTP API.

One attempt per message, no retries. A missing RESEND_API_KEY or any
provider failure raises EXTERNAL_SERVICE_ERROR for the caller to surface.
"""

import logging

import requests

from supplyhub.core.errors import external
from supplyhub.core.secrets import get_key, mask

log = logging.getLogger("supplyhub.email")

RESEND_ENDPOINT = "https://api.resend.com/emails"
CODE_TTL_MINUTES = 15

VERIFICATION_SUBJECT = "Verify your email"
VERIFICATION_HTML = """
        <h1>Verify your email</h1>
        <p>Your verification code is: <strong>{code}</strong></p>
        <p>This code will expire in {minutes} minutes.</p>
"""


class EmailSender:
    """Send HTML email through Resend."""

    def __init__(self, api_key: str = None, from_addr: str = None, timeout: float = 10):
        self.api_key = api_key if api_key is not None else get_key("resend")
        self.from_addr = from_addr or get_key("email_from")
        self.timeout = timeout

    def send(self, to: str, subject: str, html: str) -> dict:
        if not self.api_key:
            raise external("Email provider not configured. Please add RESEND_API_KEY to environment variables.")
        try:
            resp = requests.post(
                RESEND_ENDPOINT,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={"from": self.from_addr, "to": [to], "subject": subject, "html": html},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            log.error("Email to %s failed (key %s): %s", to, mask(self.api_key), e)
            raise external(f"Failed to send email: {e}") from e
        data = resp.json() if resp.content else {}
        log.info("Email sent to %s: %s", to, subject)
        return {"success": True, "id": data.get("id")}


def render_verification_email(code: str) -> str:
    return VERIFICATION_HTML.format(code=code, minutes=CODE_TTL_MINUTES)


def send_verification_email(email: str, code: str, sender: EmailSender = None) -> dict:
    """Email a 6-digit verification code."""
    log.info("Sending verification email to: %s", email)
    sender = sender or EmailSender()
    return sender.send(email, VERIFICATION_SUBJECT, render_verification_email(code))
