from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.core.exceptions import NotFoundError
from eventshare.core.ids import parse_id
from eventshare.core.logging import logger
from eventshare.core.security import utcnow
from eventshare.db.models import Feedback, FeedbackStatusEnum, FeedbackTypeEnum, User
from eventshare.db.repositories import feedback as feedback_repo
from eventshare.schemas import FeedbackCreate, FeedbackStatusUpdate

RESOLVED_STATUSES = (FeedbackStatusEnum.resolved, FeedbackStatusEnum.closed)


class FeedbackService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def submit(self, payload: FeedbackCreate, user: Optional[User]) -> Feedback:
        email = payload.email or (user.email if user else None)
        feedback = await feedback_repo.create_feedback(
            self.session,
            message=payload.message.strip(),
            type=FeedbackTypeEnum(payload.type.value),
            user_id=user.id if user else None,
            email=email,
            platform=payload.platform,
            app_version=payload.app_version,
        )
        logger.info(f"Received {feedback.type.value} feedback {feedback.id}")
        return feedback

    async def list_feedback(
        self,
        status: Optional[str],
        feedback_type: Optional[str],
        skip: int,
        limit: int,
    ) -> Tuple[int, List[Feedback]]:
        return await feedback_repo.list_feedback(
            self.session,
            status=FeedbackStatusEnum(status) if status else None,
            feedback_type=FeedbackTypeEnum(feedback_type) if feedback_type else None,
            limit=limit,
            offset=skip,
        )

    async def stats(self) -> dict:
        return await feedback_repo.feedback_stats(self.session)

    async def get_feedback(self, feedback_id: str) -> Feedback:
        feedback = await feedback_repo.get_feedback(self.session, parse_id(feedback_id, "Feedback"))
        if not feedback:
            raise NotFoundError(f"Feedback not found with id of {feedback_id}")
        return feedback

    async def update_status(self, feedback_id: str, payload: FeedbackStatusUpdate) -> Feedback:
        feedback = await self.get_feedback(feedback_id)
        status = FeedbackStatusEnum(payload.status.value)
        updates = {"status": status}
        if payload.admin_notes is not None:
            updates["admin_notes"] = payload.admin_notes
        if status in RESOLVED_STATUSES:
            updates["resolved_at"] = feedback.resolved_at or utcnow()
        else:
            updates["resolved_at"] = None
        feedback = await feedback_repo.update_feedback(self.session, feedback, **updates)
        logger.info(f"Feedback {feedback.id} marked {status.value}")
        return feedback
