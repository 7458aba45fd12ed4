"""
Push dispatch through the Expo push API.
"""
from dataclasses import dataclass, field
from typing import List, Optional
import httpx
from eventshare.core.config import settings
from eventshare.core.logging import logger

CHUNK_SIZE = 100
UNREGISTERED_ERROR = "DeviceNotRegistered"


@dataclass
class PushResult:
    sent: int = 0
    failed: int = 0
    invalid_tokens: List[str] = field(default_factory=list)


def chunked(items: List[str], size: int = CHUNK_SIZE):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class PushService:
    def __init__(self, push_url: Optional[str] = None, timeout: float = 10.0):
        self.push_url = push_url or settings.EXPO_PUSH_URL
        self.timeout = timeout

    async def send_push(self, tokens: List[str], payload: dict) -> PushResult:
        """
        Send ``payload`` (title, body, data) to every token.

        Transport failures are counted as failed deliveries rather than raised.
        Tokens Expo reports as ``DeviceNotRegistered`` are returned in
        ``invalid_tokens`` for deactivation.
        """
        result = PushResult()
        if not tokens:
            return result
        if not settings.PUSH_ENABLED:
            logger.debug(f"Push disabled, skipping {len(tokens)} tokens")
            return result

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for chunk in chunked(list(tokens)):
                messages = [
                    {
                        "to": token,
                        "title": payload.get("title"),
                        "body": payload.get("body"),
                        "data": payload.get("data", {}),
                        "sound": "default",
                    }
                    for token in chunk
                ]
                try:
                    response = await client.post(self.push_url, json=messages)
                    response.raise_for_status()
                    tickets = response.json().get("data", [])
                except (httpx.HTTPError, ValueError) as e:
                    logger.error(f"Expo push request failed for {len(chunk)} tokens: {e}")
                    result.failed += len(chunk)
                    continue

                for token, ticket in zip(chunk, tickets):
                    if ticket.get("status") == "ok":
                        result.sent += 1
                        continue
                    result.failed += 1
                    error = (ticket.get("details") or {}).get("error")
                    if error == UNREGISTERED_ERROR:
                        result.invalid_tokens.append(token)
                    logger.warning(f"Push to {token[:16]}... failed: {ticket.get('message') or error}")
                result.failed += max(0, len(chunk) - len(tickets))

        logger.info(f"Push dispatch: {result.sent} sent, {result.failed} failed")
        return result


push_service = PushService()
