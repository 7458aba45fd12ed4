"""
Repository layer for database operations.

Async functions grouped per aggregate. Functions that take part in a larger
transaction (participation, like toggling, invitation status changes) flush
or execute without committing and leave the commit to the calling service.
"""
from eventshare.db.repositories import users, events, invitations, media, push_tokens, feedback

__all__ = ["users", "events", "invitations", "media", "push_tokens", "feedback"]
