from __future__ import annotations

import html

import requests

from .config import settings
from .exceptions import NotificationError
from .logger import logger

RESEND_EMAILS_URL = "https://api.resend.com/emails"


class ResendNotifier:
    """Completion e-mails through the Resend HTTP API."""

    def __init__(self, api_key: str = settings.RESEND_API_KEY, sender: str = settings.NOTIFY_FROM_EMAIL,
                 session: requests.Session | None = None, timeout: float = 10.0):
        self.api_key = api_key
        self.sender = sender
        self.session = session or requests.Session()
        self.timeout = timeout

    def send_video_ready(self, email: str, video_url: str) -> None:
        if not self.api_key:
            raise NotificationError("RESEND_API_KEY is not set")

        link = html.escape(video_url, quote=True)
        payload = {
            "from": self.sender,
            "to": email,
            "subject": "Votre vidéo SpotBulle",
            "html": f'<p>Regardez votre vidéo : <a href="{link}">{link}</a></p>',
        }
        try:
            resp = self.session.post(
                RESEND_EMAILS_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NotificationError(f"Resend request failed: {e}")

        if resp.status_code >= 300:
            raise NotificationError(f"Resend rejected e-mail: {resp.status_code} {resp.text[:200]}")

        logger.info("Completion e-mail sent", extra={"to": email})
