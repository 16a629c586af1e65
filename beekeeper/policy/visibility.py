"""
Visibility rules shared by articles and every forum kind.

Admins see everything, owners see their own content whatever its block
state, everyone else sees only content that is publicly visible. Forum
threads and comments are only as visible as the containers they live in.
"""
from typing import Iterable, List, Optional

from sqlalchemy import or_, true

from beekeeper.policy.roles import Identity
from beekeeper.utils.exceptions import AuthenticationRequired


def can_view(entity, identity: Optional[Identity]) -> bool:
    if identity is not None:
        if identity.is_admin:
            return True
        if identity.id == entity.owner_id:
            return True
    return entity.publicly_visible()


# Same rule, used as a list filter predicate
can_list = can_view


def filter_visible(entities: Iterable, identity: Optional[Identity]) -> List:
    return [e for e in entities if can_list(e, identity)]


def can_view_thread(thread, category, identity: Optional[Identity]) -> bool:
    return can_view(thread, identity) and can_view(category, identity)


def can_view_forum_comment(comment, thread, category, identity: Optional[Identity]) -> bool:
    return can_view(comment, identity) and can_view_thread(thread, category, identity)


def require_identity(identity: Optional[Identity], what: str = "this resource") -> Identity:
    """Authentication gate, checked before any visibility predicate."""
    if identity is None:
        raise AuthenticationRequired(f"Please log in to view {what}")
    return identity


def visibility_clause(model, identity: Optional[Identity]):
    """SQL form of can_list for `model`, so list queries paginate over the visible rows only."""
    if identity is not None and identity.is_admin:
        return true()
    if identity is not None:
        return or_(model.public_clause(), model.owner_id == identity.id)
    return model.public_clause()
