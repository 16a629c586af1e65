"""
Moderation state machine for moderatable content.

Three independent boolean machines live here: block/unblock for every
moderatable kind, and lock/unlock plus pin/unpin for forum threads. Every
transition validates the actor and the current state first and only then
touches the entity, so a rejected transition never leaves half-set fields.
"""
import enum
import logging
from datetime import datetime, timezone
from typing import Optional

from beekeeper.policy.roles import Identity
from beekeeper.utils.exceptions import Forbidden, InvalidState, NotFound

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "No reason specified"


class BlockPolicy(enum.Enum):
    # Re-block / unblock-of-active raise InvalidState
    STRICT = "strict"
    # Re-block overwrites the block metadata, unblock-of-active is a no-op
    IDEMPOTENT = "idempotent"


def _kind(entity) -> str:
    return getattr(entity, "__tablename__", type(entity).__name__)


def _label(entity) -> str:
    return {
        "articles": "Article",
        "forum_categories": "Category",
        "forum_threads": "Thread",
        "forum_comments": "Comment",
    }.get(_kind(entity), type(entity).__name__)


def _require_admin(actor: Optional[Identity], action: str, entity) -> None:
    if actor is None or not actor.is_admin:
        raise Forbidden(reason=f"{action} on {_kind(entity)} {getattr(entity, 'id', None)} requires admin")


def block(entity, actor: Identity, reason: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """
    Block an entity on behalf of an admin.

    Args:
        entity: any moderatable model instance
        actor: the acting admin
        reason: free text; an empty reason is replaced by a placeholder
        now: timestamp to record, defaults to the current UTC time

    Returns:
        str: human readable outcome message

    Raises:
        Forbidden: actor is not an admin
        InvalidState: entity already blocked under the STRICT policy
    """
    _require_admin(actor, "block", entity)
    label = _label(entity)
    if entity.is_blocked and entity.block_policy == BlockPolicy.STRICT:
        raise InvalidState(f"{label} is already blocked")

    entity.is_blocked = True
    entity.blocked_at = now or datetime.now(timezone.utc)
    entity.blocked_by = actor.id
    entity.blocked_reason = (reason or "").strip() or DEFAULT_BLOCK_REASON
    logger.info(f"{label} {entity.id} blocked by admin {actor.id}")
    return f"{label} blocked successfully"


def unblock(entity, actor: Identity) -> str:
    _require_admin(actor, "unblock", entity)
    label = _label(entity)
    if not entity.is_blocked and entity.block_policy == BlockPolicy.STRICT:
        raise InvalidState(f"{label} is not blocked")

    entity.is_blocked = False
    entity.blocked_at = None
    entity.blocked_by = None
    entity.blocked_reason = None
    logger.info(f"{label} {entity.id} unblocked by admin {actor.id}")
    return f"{label} unblocked successfully"


def set_blocked(entity, actor: Identity, blocked: bool, reason: Optional[str] = None) -> str:
    if blocked:
        return block(entity, actor, reason)
    return unblock(entity, actor)


def set_locked(thread, actor: Identity, locked: bool) -> str:
    _require_admin(actor, "lock" if locked else "unlock", thread)
    thread.is_locked = locked
    logger.info(f"Thread {thread.id} {'locked' if locked else 'unlocked'} by admin {actor.id}")
    return f"Thread {'locked' if locked else 'unlocked'} successfully"


def set_pinned(thread, actor: Identity, pinned: bool) -> str:
    _require_admin(actor, "pin" if pinned else "unpin", thread)
    thread.is_pinned = pinned
    return f"Thread {'pinned' if pinned else 'unpinned'} successfully"


def move(thread, actor: Identity, target_category) -> str:
    """Reassign a thread to another category. Blocked targets are allowed."""
    _require_admin(actor, "move", thread)
    if target_category is None:
        raise NotFound("Target category")
    thread.category_id = target_category.id
    logger.info(f"Thread {thread.id} moved to category {target_category.id} by admin {actor.id}")
    return "Thread moved successfully"


def accepts_comments(thread) -> bool:
    return not thread.is_locked and not thread.is_blocked


def ensure_accepts_comments(thread) -> None:
    """New comments and comment edits are refused in locked or blocked threads, whoever asks."""
    if not accepts_comments(thread):
        raise Forbidden(
            "This thread is locked or blocked and cannot receive new comments or edits",
            reason=f"thread {thread.id} locked={thread.is_locked} blocked={thread.is_blocked}",
        )


def ensure_thread_editable(thread, identity: Identity) -> None:
    # only admins edit locked threads
    if thread.is_locked and not identity.is_admin:
        raise Forbidden(
            "This thread is locked and cannot be edited",
            reason=f"thread {thread.id} locked, editor {identity.id}",
        )
