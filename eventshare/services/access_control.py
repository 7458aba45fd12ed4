"""
Event access-control rules.

Pure predicates over an already-loaded event, the caller (``None`` when
anonymous) and whether the caller holds a participation row. The
``ensure_*`` variants raise the matching HTTP error instead of returning
False. Nothing here is cached; callers evaluate the rules on every request.
"""
from typing import Optional
from eventshare.core.exceptions import UnauthorizedError, ForbiddenError, ConflictError
from eventshare.core.logging import logger
from eventshare.db.models import Event, User


def is_creator(event: Event, caller: Optional[User]) -> bool:
    return caller is not None and caller.id == event.created_by


def can_view(event: Event, caller: Optional[User], is_participant: bool) -> bool:
    if not event.is_private:
        return True
    return is_creator(event, caller) or (caller is not None and is_participant)


def ensure_can_view(event: Event, caller: Optional[User], is_participant: bool) -> None:
    if can_view(event, caller, is_participant):
        return
    if caller is None:
        raise UnauthorizedError("Authentication required to view this private event")
    logger.warning(f"User {caller.id} denied view of private event {event.id}")
    raise ForbiddenError("Not authorized to view this private event")


def can_modify(event: Event, caller: Optional[User]) -> bool:
    return is_creator(event, caller)


def ensure_can_modify(event: Event, caller: Optional[User]) -> None:
    if not can_modify(event, caller):
        logger.warning(f"User {getattr(caller, 'id', None)} denied modification of event {event.id}")
        raise ForbiddenError("Only the event creator can modify this event")


def can_share(event: Event, caller: Optional[User], is_participant: bool) -> bool:
    if caller is None:
        return False
    if not event.is_private:
        return True
    return is_creator(event, caller) or is_participant


def ensure_can_share(event: Event, caller: Optional[User], is_participant: bool) -> None:
    if caller is None:
        raise UnauthorizedError("Authentication required to share events")
    if not can_share(event, caller, is_participant):
        logger.warning(f"User {caller.id} denied sharing of private event {event.id}")
        raise ForbiddenError("Only members can share this private event")


def can_join(event: Event, caller: Optional[User], is_participant: bool, via_share_token: bool) -> bool:
    if caller is None or is_participant:
        return False
    return via_share_token or not event.is_private


def ensure_can_join(event: Event, caller: Optional[User], is_participant: bool, via_share_token: bool) -> None:
    if caller is None:
        raise UnauthorizedError("Authentication required to join events")
    if is_participant:
        raise ConflictError("Already a participant of this event")
    if not can_join(event, caller, is_participant, via_share_token):
        logger.warning(f"User {caller.id} denied direct join of private event {event.id}")
        raise ForbiddenError("This event is private; use an invitation or share link to join")


def can_invite(event: Event, caller: Optional[User], is_participant: bool) -> bool:
    return is_creator(event, caller) or (caller is not None and is_participant)


def ensure_can_invite(event: Event, caller: Optional[User], is_participant: bool) -> None:
    if not can_invite(event, caller, is_participant):
        logger.warning(f"User {getattr(caller, 'id', None)} denied inviting to event {event.id}")
        raise ForbiddenError("Only the creator or participants can invite to this event")
