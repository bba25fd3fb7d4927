"""Transactional e-mail through the Resend REST API."""
import logging
from typing import Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class MailerError(Exception):
    pass


def render_accreditation_email(company: str, stand: str, event: str, plates: list[str]) -> str:
    vehicles = "".join(f"<li>{plate}</li>" for plate in plates)
    return (
        "<p>Hello,</p>"
        f"<p>Your vehicle accreditation for <strong>{company}</strong> (stand {stand}, event {event}) "
        "has been registered.</p>"
        f"<ul>{vehicles}</ul>"
        "<p>Please present it at the venue access point.</p>"
    )


def send_email(to: str, subject: str, html: str, timeout: Optional[float] = 15.0) -> dict:
    """POST one message; raises MailerError on any delivery failure."""
    if not settings.RESEND_API_KEY:
        raise MailerError("E-mail delivery is not configured (RESEND_API_KEY is empty)")

    headers = {"Authorization": f"Bearer {settings.RESEND_API_KEY}"}
    payload = {"from": settings.FROM_EMAIL, "to": [to], "subject": subject, "html": html}
    try:
        with httpx.Client(timeout=timeout, headers=headers) as client:
            resp = client.post(settings.RESEND_API_URL, json=payload)
        resp.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise MailerError(f"E-mail API error {exc.response.status_code}: {exc.response.text}") from exc
    except httpx.HTTPError as exc:
        raise MailerError(f"E-mail API unreachable: {exc}") from exc

    logger.info("Sent '%s' to %s", subject, to)
    return resp.json() if resp.content else {}
