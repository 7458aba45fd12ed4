"""
Invitation lifecycle.

``pending`` is the only non-terminal state; it moves to ``accepted``,
``declined`` or ``expired`` through a conditional update on the current
status, so two concurrent responses cannot both succeed. Accepting also
inserts the participation row and bumps the event counter in the same
transaction.
"""
from typing import Optional, List, Tuple
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnavailableError,
)
from eventshare.core.ids import parse_id
from eventshare.core.logging import logger
from eventshare.core.security import utcnow
from eventshare.db.models import Invitation, InvitationStatusEnum, User
from eventshare.db.repositories import (
    events as event_repo,
    invitations as invitation_repo,
    users as user_repo,
)
from eventshare.events import publisher
from eventshare.schemas import EventOut, InvitationCreate, InvitationOut, PublicUserOut
from eventshare.services import access_control

PENDING = InvitationStatusEnum.pending


def default_message(event_name: str) -> str:
    return f'You\'re invited to join "{event_name}"!'


class InvitationService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_invitation_or_404(self, invitation_id) -> Invitation:
        uid = parse_id(invitation_id, "Invitation")
        invitation = await invitation_repo.get_invitation(self.session, uid)
        if not invitation:
            raise NotFoundError(f"Invitation not found with id of {invitation_id}")
        return invitation

    async def send(self, payload: InvitationCreate, inviter: User) -> Invitation:
        """
        Create a pending invitation.

        Raises:
            ConflictError: Self-invite, invitee already a participant or
                already holding a pending/accepted invitation
            NotFoundError: Event or invitee does not exist
            ForbiddenError: Inviter is neither creator nor participant
        """
        if payload.invitee_id == inviter.id:
            raise ConflictError("You cannot invite yourself")

        event = await event_repo.get_event(self.session, payload.event_id)
        if not event:
            raise NotFoundError(f"Event not found with id of {payload.event_id}")
        invitee = await user_repo.get_user(self.session, payload.invitee_id)
        if not invitee:
            raise NotFoundError(f"User not found with id of {payload.invitee_id}")

        inviter_is_participant = await event_repo.is_participant(self.session, event.id, inviter.id)
        access_control.ensure_can_invite(event, inviter, inviter_is_participant)

        if await event_repo.is_participant(self.session, event.id, invitee.id):
            raise ConflictError("User is already a participant of this event")
        if await invitation_repo.find_active_invitation(self.session, event.id, invitee.id):
            raise ConflictError("User already has an active invitation to this event")

        message = (payload.message or "").strip() or default_message(event.name)
        invitation = await invitation_repo.create_invitation(
            self.session,
            event_id=event.id,
            inviter_id=inviter.id,
            invitee_id=invitee.id,
            message=message,
        )
        logger.info(f"User {inviter.id} invited user {invitee.id} to event {event.id}")
        await publisher.publish_event(
            publisher.INVITATION_SENT,
            {
                "invitation_id": str(invitation.id),
                "event_id": str(event.id),
                "event_name": event.name,
                "inviter_id": str(inviter.id),
                "inviter_name": inviter.name,
                "recipient_id": str(invitee.id),
            },
        )
        return invitation

    async def _close_as(self, invitation_id, status: InvitationStatusEnum) -> bool:
        changed = await invitation_repo.transition_status(
            self.session, invitation_id, PENDING, status, responded_at=utcnow()
        )
        await self.session.commit()
        return changed

    async def accept(self, invitation_id: str, user: User) -> dict:
        """
        Accept a pending invitation.

        Returns:
            The accepted invitation and the updated event
        """
        invitation = await self.get_invitation_or_404(invitation_id)
        inv_id, user_id, inviter_id = invitation.id, user.id, invitation.inviter_id
        if invitation.invitee_id != user_id:
            raise ForbiddenError("Only the invitee can accept this invitation")
        if invitation.status != PENDING:
            raise ConflictError(f"Invitation has already been {invitation.status.value}")

        event = None
        if invitation.event_id is not None:
            event = await event_repo.get_event(self.session, invitation.event_id)
        if event is None:
            await self._close_as(inv_id, InvitationStatusEnum.expired)
            logger.info(f"Invitation {inv_id} expired: event no longer exists")
            raise NotFoundError("The event for this invitation no longer exists")
        event_id = event.id

        if await event_repo.is_participant(self.session, event_id, user_id):
            if not await self._close_as(inv_id, InvitationStatusEnum.accepted):
                raise ConflictError("Invitation is no longer pending")
            raise ConflictError("You are already a participant of this event")

        try:
            if not await invitation_repo.transition_status(
                self.session, inv_id, PENDING, InvitationStatusEnum.accepted, responded_at=utcnow()
            ):
                await self.session.rollback()
                raise ConflictError("Invitation is no longer pending")
            await event_repo.add_participant(self.session, event_id, user_id)
            await event_repo.adjust_participant_count(self.session, event_id, 1)
            await self.session.commit()
        except IntegrityError:
            # a concurrent join got there first
            await self.session.rollback()
            await self._close_as(inv_id, InvitationStatusEnum.accepted)
            raise ConflictError("You are already a participant of this event")
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Accepting invitation {inv_id} failed: {e}")
            raise UnavailableError("Could not accept invitation, please try again")

        await self.session.refresh(invitation)
        await self.session.refresh(event)
        logger.info(f"User {user_id} accepted invitation {inv_id} to event {event_id}")
        await publisher.publish_event(
            publisher.INVITATION_ACCEPTED,
            {
                "invitation_id": str(inv_id),
                "event_id": str(event_id),
                "event_name": event.name,
                "invitee_id": str(user_id),
                "invitee_name": user.name,
                "recipient_id": str(inviter_id),
            },
        )
        return {"invitation": invitation, "event": event}

    async def decline(self, invitation_id: str, user: User) -> Invitation:
        invitation = await self.get_invitation_or_404(invitation_id)
        inv_id, user_id, inviter_id = invitation.id, user.id, invitation.inviter_id
        if invitation.invitee_id != user_id:
            raise ForbiddenError("Only the invitee can decline this invitation")
        if invitation.status != PENDING:
            raise ConflictError(f"Invitation has already been {invitation.status.value}")

        try:
            changed = await self._close_as(inv_id, InvitationStatusEnum.declined)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Declining invitation {inv_id} failed: {e}")
            raise UnavailableError("Could not decline invitation, please try again")
        if not changed:
            raise ConflictError("Invitation is no longer pending")

        await self.session.refresh(invitation)
        logger.info(f"User {user_id} declined invitation {inv_id}")
        await publisher.publish_event(
            publisher.INVITATION_DECLINED,
            {
                "invitation_id": str(inv_id),
                "event_id": str(invitation.event_id) if invitation.event_id else None,
                "invitee_id": str(user_id),
                "invitee_name": user.name,
                "recipient_id": str(inviter_id),
            },
        )
        return invitation

    async def cancel(self, invitation_id: str, user: User) -> None:
        invitation = await self.get_invitation_or_404(invitation_id)
        if invitation.inviter_id != user.id:
            raise ForbiddenError("Only the inviter can cancel this invitation")
        if invitation.status != PENDING:
            raise ConflictError(f"Invitation has already been {invitation.status.value}")
        inv_id = invitation.id
        if not await invitation_repo.delete_pending_invitation(self.session, inv_id):
            raise ConflictError("Invitation is no longer pending")
        logger.info(f"User {user.id} cancelled invitation {inv_id}")

    async def list_received(
        self, user: User, status: Optional[InvitationStatusEnum], skip: int, limit: int
    ) -> Tuple[int, List[dict]]:
        total, invitations = await invitation_repo.list_received(
            self.session, user.id, status=status, limit=limit, offset=skip
        )
        return total, await self._with_details(invitations)

    async def list_sent(
        self,
        user: User,
        event_id: Optional[str],
        status: Optional[InvitationStatusEnum],
        skip: int,
        limit: int,
    ) -> Tuple[int, List[dict]]:
        event_uuid = parse_id(event_id, "Event") if event_id else None
        total, invitations = await invitation_repo.list_sent(
            self.session, user.id, event_id=event_uuid, status=status, limit=limit, offset=skip
        )
        return total, await self._with_details(invitations)

    async def _with_details(self, invitations: List[Invitation]) -> List[dict]:
        """Attach event, inviter and invitee summaries to each invitation."""
        user_ids = set()
        for inv in invitations:
            user_ids.update((inv.inviter_id, inv.invitee_id))
        users = await user_repo.get_users_by_ids(self.session, user_ids)

        events = {}
        for inv in invitations:
            if inv.event_id is not None and inv.event_id not in events:
                events[inv.event_id] = await event_repo.get_event(self.session, inv.event_id)

        results = []
        for inv in invitations:
            item = InvitationOut.model_validate(inv).model_dump()
            event = events.get(inv.event_id)
            item["event"] = EventOut.model_validate(event).model_dump() if event else None
            for key, uid in (("inviter", inv.inviter_id), ("invitee", inv.invitee_id)):
                person = users.get(uid)
                item[key] = PublicUserOut.model_validate(person).model_dump() if person else None
            results.append(item)
        return results

    async def get_invitation(self, invitation_id: str, user: User) -> dict:
        """
        Single invitation for its inviter or invitee. The event summary
        carries the live participant count.
        """
        invitation = await self.get_invitation_or_404(invitation_id)
        if user.id not in (invitation.inviter_id, invitation.invitee_id):
            raise ForbiddenError("Not authorized to view this invitation")
        return (await self._with_details([invitation]))[0]

    async def event_stats(self, event_id: str, user: User) -> dict:
        event = await self._member_event(event_id, user)
        counts = await invitation_repo.count_by_status(self.session, event.id)
        stats = {status.value: counts.get(status.value, 0) for status in InvitationStatusEnum}
        stats["total"] = sum(stats.values())
        stats["participants"] = await event_repo.count_participants(self.session, event.id)
        stats["event_id"] = event.id
        return stats

    async def available_users(
        self, event_id: str, user: User, search: Optional[str], skip: int, limit: int
    ) -> Tuple[int, List[User]]:
        """
        Users who can still be invited: not participating, without an
        active invitation, and not the caller.
        """
        event = await self._member_event(event_id, user)
        excluded = set(await event_repo.participant_user_ids(self.session, event.id))
        excluded.update(await invitation_repo.active_invitee_ids(self.session, event.id))
        excluded.add(user.id)
        return await user_repo.search_users(self.session, search, excluded, limit=limit, offset=skip)

    async def _member_event(self, event_id: str, user: User):
        uid = parse_id(event_id, "Event")
        event = await event_repo.get_event(self.session, uid)
        if not event:
            raise NotFoundError(f"Event not found with id of {event_id}")
        is_participant = await event_repo.is_participant(self.session, event.id, user.id)
        access_control.ensure_can_invite(event, user, is_participant)
        return event
