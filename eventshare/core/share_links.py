"""
Share-link tokens.

A token is 20 bytes from ``secrets`` rendered as hex. It is stored on the
event row (unique, indexed) and looked up by exact value together with the
event id from the URL; the final comparison is constant time.
"""
import base64
import hmac
import secrets
from io import BytesIO
from typing import Optional

import qrcode

from eventshare.core.config import settings

SHARE_TOKEN_BYTES = 20


def generate_share_token() -> str:
    return secrets.token_hex(SHARE_TOKEN_BYTES)


def token_matches(stored: Optional[str], provided: Optional[str]) -> bool:
    if not stored or not provided:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), provided.encode("utf-8"))


def build_share_link(event_id, token: str) -> str:
    return f"{settings.CLIENT_URL.rstrip('/')}/event/{event_id}/{token}"


def qr_code_data_url(link: str) -> str:
    """PNG QR code of ``link`` as a data URL."""
    img = qrcode.make(link)
    buffered = BytesIO()
    img.save(buffered, format="PNG")
    encoded = base64.b64encode(buffered.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
