"""
Transactional email over an HTTP API (Resend-compatible ``POST /emails``).
"""
import html
from typing import Optional
import httpx
from eventshare.core.config import settings
from eventshare.core.logging import logger

TEMPLATES = {
    "verification_code": {
        "subject": "Your EventShare verification code",
        "body": (
            "Hi {name},\n\n"
            "Your verification code is {code}. It expires in {ttl_minutes} minutes.\n\n"
            "If you did not create an account you can ignore this email."
        ),
    },
    "welcome": {
        "subject": "Welcome to EventShare",
        "body": (
            "Hi {name},\n\n"
            "Your email is verified. Create an event, invite your friends and "
            "start sharing photos and videos."
        ),
    },
}


class EmailDeliveryError(Exception):
    """The email API rejected the message or could not be reached."""


class EmailService:
    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_url = api_url or settings.EMAIL_API_URL
        self.api_key = api_key if api_key is not None else settings.EMAIL_API_KEY
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SECONDS

    def _from_header(self) -> str:
        if settings.EMAIL_FROM_NAME:
            return f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"
        return settings.EMAIL_FROM

    @staticmethod
    def render(template: str, data: dict) -> tuple:
        if template not in TEMPLATES:
            raise ValueError(f"Unknown email template: {template}")
        entry = TEMPLATES[template]
        text_body = entry["body"].format(**data)
        html_body = "<br>".join(html.escape(line) for line in text_body.split("\n"))
        return entry["subject"], text_body, html_body

    async def send_email(self, to: str, template: str, data: dict) -> bool:
        """
        Render and send a template.

        Returns:
            True when sent, False when skipped because no API key is configured

        Raises:
            EmailDeliveryError: If the API is unreachable or rejects the message
        """
        subject, text_body, html_body = self.render(template, data)
        if not self.api_key:
            logger.warning(f"EMAIL_API_KEY not configured, skipping '{template}' email to {to}")
            return False

        payload = {
            "from": self._from_header(),
            "to": [to],
            "subject": subject,
            "text": text_body,
            "html": html_body,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Email API unreachable sending '{template}' to {to}: {e}")
            raise EmailDeliveryError(str(e))

        if response.status_code >= 400:
            logger.error(f"Email API returned {response.status_code} for '{template}': {response.text}")
            raise EmailDeliveryError(f"Email API returned {response.status_code}")

        logger.info(f"Sent '{template}' email to {to}")
        return True


email_service = EmailService()
