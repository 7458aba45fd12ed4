from datetime import timedelta
from typing import List, Iterable
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.core.exceptions import NotFoundError
from eventshare.core.logging import logger
from eventshare.core.security import utcnow
from eventshare.db.models import PlatformEnum, PushToken, PushTokenTypeEnum, User
from eventshare.db.repositories import push_tokens as push_token_repo
from eventshare.schemas import PushTokenRegister
from eventshare.services import push_service as push_module


class NotificationService:
    """Push token registry and push delivery to users."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def register_token(self, payload: PushTokenRegister, user: User) -> PushToken:
        fields = payload.model_dump(exclude={"token"})
        fields["platform"] = PlatformEnum(payload.platform.value)
        fields["token_type"] = PushTokenTypeEnum(payload.token_type.value)
        token = await push_token_repo.upsert_token(self.session, payload.token.strip(), user.id, **fields)
        logger.info(f"Registered {payload.platform.value} push token for user {user.id}")
        return token

    async def list_tokens(self, user: User) -> List[PushToken]:
        return await push_token_repo.list_user_tokens(self.session, user.id)

    async def deactivate_token(self, token: str, user: User) -> None:
        if not await push_token_repo.deactivate_tokens(self.session, [token], user_id=user.id):
            raise NotFoundError("Push token not found")

    async def send_to_users(self, user_ids: Iterable[uuid.UUID], title: str, body: str, data: dict) -> dict:
        """
        Push a notification to every active token of the given users,
        deactivating tokens the push service reports as unregistered.
        """
        tokens = await push_token_repo.active_tokens_for_users(self.session, user_ids)
        values = [t.token for t in tokens]
        result = await push_module.push_service.send_push(values, {"title": title, "body": body, "data": data})

        deactivated = 0
        if result.invalid_tokens:
            deactivated = await push_token_repo.deactivate_tokens(self.session, result.invalid_tokens)
            logger.info(f"Deactivated {deactivated} unregistered push tokens")
        delivered = [t for t in values if t not in result.invalid_tokens]
        if result.sent:
            await push_token_repo.touch_tokens(self.session, delivered)
        return {"tokens": len(values), "sent": result.sent, "failed": result.failed, "deactivated": deactivated}

    async def token_stats(self) -> dict:
        return await push_token_repo.token_stats(self.session)

    async def cleanup_inactive(self, days_old: int = 30) -> int:
        deleted = await push_token_repo.delete_inactive_before(self.session, utcnow() - timedelta(days=days_old))
        logger.info(f"Removed {deleted} inactive push tokens older than {days_old} days")
        return deleted
