import logging
from typing import Optional

from beekeeper.policy.roles import Identity, Role
from beekeeper.utils.exceptions import Forbidden

logger = logging.getLogger(__name__)

CONTENT_CREATOR_ROLES = frozenset({Role.AUTHOR, Role.ADMIN})


def can_edit(entity, identity: Optional[Identity]) -> bool:
    if identity is None:
        return False
    return identity.is_admin or identity.id == entity.owner_id


def can_delete(entity, identity: Optional[Identity]) -> bool:
    return can_edit(entity, identity)


def can_create_forum_content(identity: Optional[Identity]) -> bool:
    return identity is not None and identity.role in CONTENT_CREATOR_ROLES


def can_create_article(identity: Optional[Identity]) -> bool:
    return identity is not None and identity.role in CONTENT_CREATOR_ROLES


def can_comment_on_articles(user) -> bool:
    return user is not None and bool(user.is_active)


def can_change_role(actor: Optional[Identity], target_user_id: int) -> bool:
    # nobody changes their own role, admins included
    return actor is not None and actor.is_admin and actor.id != target_user_id


def _deny(identity: Optional[Identity], reason: str) -> Forbidden:
    logger.warning(f"Denied user {identity.id if identity else 'anonymous'}: {reason}")
    return Forbidden(reason=reason)


def ensure_can_edit(entity, identity: Optional[Identity]) -> None:
    if not can_edit(entity, identity):
        raise _deny(identity, f"not owner of {entity.__tablename__} {entity.id}")


def ensure_can_delete(entity, identity: Optional[Identity]) -> None:
    if not can_delete(entity, identity):
        raise _deny(identity, f"not owner of {entity.__tablename__} {entity.id}")


def ensure_can_create_forum_content(identity: Optional[Identity]) -> None:
    if not can_create_forum_content(identity):
        raise _deny(identity, "insufficient role for forum content")


def ensure_can_create_article(identity: Optional[Identity]) -> None:
    if not can_create_article(identity):
        raise _deny(identity, "insufficient role for articles")


def ensure_admin(identity: Optional[Identity]) -> None:
    if identity is None or not identity.is_admin:
        raise _deny(identity, "admin role required")


def ensure_can_change_role(actor: Optional[Identity], target_user_id: int) -> None:
    if not can_change_role(actor, target_user_id):
        if actor is not None and actor.id == target_user_id:
            raise Forbidden("You cannot change your own role", reason="self role change")
        raise _deny(actor, "role change requires admin")
