"""
Unit tests for the invitation state machine.
"""
import asyncio
import pytest
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from eventshare.db.models import Event, Invitation, InvitationStatusEnum
from eventshare.db.repositories import events as event_repo, users as user_repo
from eventshare.events import publisher as publisher_module
from eventshare.schemas import InvitationCreate
from eventshare.services.invitation_service import InvitationService, default_message
from tests.factories import add_participant


@pytest.mark.unit
@pytest.mark.asyncio
class TestSendInvitation:
    async def test_send_creates_pending_invitation(self, db_session, alice, bob, private_event, published_events):
        service = InvitationService(db_session)

        invitation = await service.send(InvitationCreate(event_id=private_event.id, invitee_id=bob.id), alice)

        assert invitation.status == InvitationStatusEnum.pending
        assert invitation.message == default_message("Private Dinner")
        assert published_events.keys() == [publisher_module.INVITATION_SENT]
        _, payload = published_events.published[0]
        assert payload["recipient_id"] == str(bob.id)

    async def test_self_invite_conflicts(self, db_session, alice, private_event):
        service = InvitationService(db_session)
        with pytest.raises(HTTPException) as exc:
            await service.send(InvitationCreate(event_id=private_event.id, invitee_id=alice.id), alice)
        assert exc.value.status_code == 409

    async def test_outsider_cannot_invite(self, db_session, bob, carol, private_event):
        service = InvitationService(db_session)
        with pytest.raises(HTTPException) as exc:
            await service.send(InvitationCreate(event_id=private_event.id, invitee_id=carol.id), bob)
        assert exc.value.status_code == 403

    async def test_participant_can_invite(self, db_session, bob, carol, private_event):
        await add_participant(db_session, private_event, bob)
        service = InvitationService(db_session)

        invitation = await service.send(InvitationCreate(event_id=private_event.id, invitee_id=carol.id), bob)

        assert invitation.inviter_id == bob.id

    async def test_duplicate_active_invitation_conflicts(self, db_session, alice, bob, private_event, pending_invitation):
        service = InvitationService(db_session)
        with pytest.raises(HTTPException) as exc:
            await service.send(InvitationCreate(event_id=private_event.id, invitee_id=bob.id), alice)
        assert exc.value.status_code == 409

    async def test_inviting_participant_conflicts(self, db_session, alice, bob, private_event):
        await add_participant(db_session, private_event, bob)
        service = InvitationService(db_session)
        with pytest.raises(HTTPException) as exc:
            await service.send(InvitationCreate(event_id=private_event.id, invitee_id=bob.id), alice)
        assert exc.value.status_code == 409


@pytest.mark.unit
@pytest.mark.asyncio
class TestAcceptInvitation:
    async def test_accept_applies_all_effects(self, db_session, bob, private_event, pending_invitation, published_events):
        service = InvitationService(db_session)

        result = await service.accept(str(pending_invitation.id), bob)

        assert result["invitation"].status == InvitationStatusEnum.accepted
        assert result["invitation"].responded_at is not None
        assert result["event"].participant_count == 2
        assert await event_repo.is_participant(db_session, private_event.id, bob.id)
        assert published_events.keys() == [publisher_module.INVITATION_ACCEPTED]

    async def test_second_accept_conflicts_without_side_effects(self, db_session, bob, private_event, pending_invitation):
        service = InvitationService(db_session)
        await service.accept(str(pending_invitation.id), bob)

        with pytest.raises(HTTPException) as exc:
            await service.accept(str(pending_invitation.id), bob)

        assert exc.value.status_code == 409
        await db_session.refresh(private_event)
        assert private_event.participant_count == 2
        assert await event_repo.count_participants(db_session, private_event.id) == 2

    async def test_only_invitee_accepts(self, db_session, carol, pending_invitation):
        service = InvitationService(db_session)
        with pytest.raises(HTTPException) as exc:
            await service.accept(str(pending_invitation.id), carol)
        assert exc.value.status_code == 403

    async def test_accept_when_already_participant_closes_invitation(
        self, db_session, bob, private_event, pending_invitation
    ):
        await add_participant(db_session, private_event, bob)
        service = InvitationService(db_session)

        with pytest.raises(HTTPException) as exc:
            await service.accept(str(pending_invitation.id), bob)

        assert exc.value.status_code == 409
        await db_session.refresh(pending_invitation)
        await db_session.refresh(private_event)
        assert pending_invitation.status == InvitationStatusEnum.accepted
        assert private_event.participant_count == 2

    async def test_accept_for_deleted_event_expires(self, db_session, bob, private_event, pending_invitation):
        await event_repo.delete_event_cascade(db_session, private_event.id)
        service = InvitationService(db_session)

        with pytest.raises(HTTPException) as exc:
            await service.accept(str(pending_invitation.id), bob)

        assert exc.value.status_code == 404
        await db_session.refresh(pending_invitation)
        assert pending_invitation.status == InvitationStatusEnum.expired

    async def test_malformed_id_is_not_found(self, db_session, bob):
        service = InvitationService(db_session)
        with pytest.raises(HTTPException) as exc:
            await service.accept("not-a-uuid", bob)
        assert exc.value.status_code == 404

    async def test_failed_accept_leaves_no_partial_effects(
        self, db_session, bob, private_event, pending_invitation, published_events, monkeypatch
    ):
        inv_id, event_id, bob_id = pending_invitation.id, private_event.id, bob.id

        async def failing_adjust(session, event_id, delta):
            raise OperationalError("UPDATE events", {}, Exception("connection lost"))

        monkeypatch.setattr(event_repo, "adjust_participant_count", failing_adjust)
        service = InvitationService(db_session)

        with pytest.raises(HTTPException) as exc:
            await service.accept(str(inv_id), bob)

        assert exc.value.status_code == 503
        status = (await db_session.execute(
            select(Invitation.status).where(Invitation.id == inv_id)
        )).scalar_one()
        count = (await db_session.execute(
            select(Event.participant_count).where(Event.id == event_id)
        )).scalar_one()
        assert status == InvitationStatusEnum.pending
        assert count == 1
        assert not await event_repo.is_participant(db_session, event_id, bob_id)
        assert await event_repo.count_participants(db_session, event_id) == 1
        assert published_events.keys() == []

    async def test_concurrent_accepts_admit_once(self, db_session, session_factory, bob, private_event, pending_invitation):
        inv_id, event_id, bob_id = pending_invitation.id, private_event.id, bob.id

        async def accept_in_own_session():
            async with session_factory() as session:
                invitee = await user_repo.get_user(session, bob_id)
                try:
                    await InvitationService(session).accept(str(inv_id), invitee)
                except HTTPException as e:
                    return e.status_code
                return 200

        results = await asyncio.gather(accept_in_own_session(), accept_in_own_session())

        assert sorted(results) == [200, 409]
        count = (await db_session.execute(
            select(Event.participant_count).where(Event.id == event_id)
        )).scalar_one()
        assert count == 2
        assert count == await event_repo.count_participants(db_session, event_id)


@pytest.mark.unit
@pytest.mark.asyncio
class TestDeclineAndCancel:
    async def test_second_decline_conflicts(self, db_session, bob, pending_invitation, published_events):
        service = InvitationService(db_session)
        declined = await service.decline(str(pending_invitation.id), bob)
        assert declined.status == InvitationStatusEnum.declined
        responded_at = declined.responded_at

        with pytest.raises(HTTPException) as exc:
            await service.decline(str(pending_invitation.id), bob)

        assert exc.value.status_code == 409
        await db_session.refresh(pending_invitation)
        assert pending_invitation.responded_at == responded_at
        assert published_events.keys() == [publisher_module.INVITATION_DECLINED]

    async def test_declined_invitation_cannot_be_accepted(self, db_session, bob, pending_invitation):
        service = InvitationService(db_session)
        await service.decline(str(pending_invitation.id), bob)

        with pytest.raises(HTTPException) as exc:
            await service.accept(str(pending_invitation.id), bob)
        assert exc.value.status_code == 409

    async def test_cancel_by_inviter(self, db_session, alice, bob, pending_invitation):
        service = InvitationService(db_session)

        with pytest.raises(HTTPException) as exc:
            await service.cancel(str(pending_invitation.id), bob)
        assert exc.value.status_code == 403

        await service.cancel(str(pending_invitation.id), alice)
        with pytest.raises(HTTPException) as exc:
            await service.get_invitation_or_404(pending_invitation.id)
        assert exc.value.status_code == 404


@pytest.mark.unit
@pytest.mark.asyncio
class TestInvitationReads:
    async def test_available_users_excludes_members_and_invitees(
        self, db_session, alice, bob, carol, private_event, pending_invitation
    ):
        service = InvitationService(db_session)

        total, users = await service.available_users(str(private_event.id), alice, None, skip=0, limit=20)

        assert total == 1
        assert users[0].id == carol.id

    async def test_event_stats(self, db_session, alice, private_event, pending_invitation):
        service = InvitationService(db_session)

        stats = await service.event_stats(str(private_event.id), alice)

        assert stats["pending"] == 1
        assert stats["total"] == 1
        assert stats["participants"] == 1

    async def test_detail_hidden_from_third_parties(self, db_session, carol, pending_invitation):
        service = InvitationService(db_session)
        with pytest.raises(HTTPException) as exc:
            await service.get_invitation(str(pending_invitation.id), carol)
        assert exc.value.status_code == 403
