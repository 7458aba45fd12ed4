"""
Unit tests for media likes and media helpers.
"""
import asyncio
import pytest
from fastapi import HTTPException
from sqlalchemy import select, func

from eventshare.db.models import Media, MediaLike, MediaTypeEnum
from eventshare.db.repositories import users as user_repo
from eventshare.events import publisher as publisher_module
from eventshare.services.media_service import MediaService, media_type_for, parse_tags
from tests.factories import add_participant, create_media


async def liked_by_count(db_session, media_id) -> int:
    return (await db_session.execute(
        select(func.count(MediaLike.id)).where(MediaLike.media_id == media_id)
    )).scalar()


@pytest.mark.unit
class TestMediaHelpers:
    def test_parse_tags(self):
        assert parse_tags(None) == []
        assert parse_tags(" cake, party ,, cake ,") == ["cake", "party"]

    def test_media_type_for(self):
        assert media_type_for("image/jpeg") == MediaTypeEnum.image
        assert media_type_for("video/mp4") == MediaTypeEnum.video
        with pytest.raises(HTTPException) as exc:
            media_type_for("application/pdf")
        assert exc.value.status_code == 400


@pytest.mark.unit
@pytest.mark.asyncio
class TestToggleLike:
    async def test_like_then_unlike_restores_state(self, db_session, alice, bob, private_event):
        await add_participant(db_session, private_event, bob)
        media = await create_media(db_session, private_event, alice)
        service = MediaService(db_session)

        first = await service.toggle_like(str(media.id), bob)
        assert first["liked"] is True
        assert first["likes"] == 1
        assert await liked_by_count(db_session, media.id) == 1

        second = await service.toggle_like(str(media.id), bob)
        assert second["liked"] is False
        assert second["likes"] == 0
        assert await liked_by_count(db_session, media.id) == 0

    async def test_likes_match_liked_by(self, db_session, alice, bob, carol, public_event):
        media = await create_media(db_session, public_event, alice)
        service = MediaService(db_session)

        for user in (alice, bob, carol):
            await service.toggle_like(str(media.id), user)
        result = await service.toggle_like(str(media.id), bob)

        assert result["likes"] == 2
        assert await liked_by_count(db_session, media.id) == 2

    async def test_like_publishes_to_uploader(self, db_session, alice, bob, public_event, published_events):
        media = await create_media(db_session, public_event, alice)
        service = MediaService(db_session)

        await service.toggle_like(str(media.id), bob)
        await service.toggle_like(str(media.id), bob)

        assert published_events.keys() == [publisher_module.MEDIA_LIKED]
        _, payload = published_events.published[0]
        assert payload["recipient_id"] == str(alice.id)
        assert payload["user_id"] == str(bob.id)

    async def test_outsider_cannot_like_private_media(self, db_session, alice, carol, private_event):
        media = await create_media(db_session, private_event, alice)
        service = MediaService(db_session)

        with pytest.raises(HTTPException) as exc:
            await service.toggle_like(str(media.id), carol)
        assert exc.value.status_code == 403

    async def test_unknown_media(self, db_session, bob):
        service = MediaService(db_session)
        with pytest.raises(HTTPException) as exc:
            await service.toggle_like("9b2f3c1e-0000-4000-8000-000000000000", bob)
        assert exc.value.status_code == 404

    async def test_detail_reports_liked_by_me(self, db_session, alice, bob, public_event):
        media = await create_media(db_session, public_event, alice)
        service = MediaService(db_session)
        await service.toggle_like(str(media.id), bob)

        mine = await service.get_media_detail(str(media.id), bob)
        theirs = await service.get_media_detail(str(media.id), alice)
        anonymous = await service.get_media_detail(str(media.id), None)

        assert mine["liked_by"] == [bob.id]
        assert mine["liked_by_me"] is True
        assert theirs["liked_by_me"] is False
        assert anonymous["liked_by_me"] is False

    async def test_concurrent_likes_by_different_users(self, db_session, session_factory, alice, bob, carol, public_event):
        media = await create_media(db_session, public_event, alice)
        media_id = media.id
        user_ids = [alice.id, bob.id, carol.id]

        async def like_in_own_session(user_id):
            async with session_factory() as session:
                user = await user_repo.get_user(session, user_id)
                return await MediaService(session).toggle_like(str(media_id), user)

        results = await asyncio.gather(*(like_in_own_session(uid) for uid in user_ids))

        assert all(r["liked"] for r in results)
        likes = (await db_session.execute(select(Media.likes).where(Media.id == media_id))).scalar_one()
        assert likes == await liked_by_count(db_session, media_id)
        assert likes == 3
