import enum

from beekeeper.models.comment import ArticleComment, CommentStatus
from beekeeper.utils.exceptions import ReferentialConflict

TOMBSTONE_TEXT = "[This comment has been deleted]"


class CommentDeletion(enum.Enum):
    HARD_DELETE = "hard_delete"
    TOMBSTONE = "tombstone"


def ensure_category_deletable(thread_count: int) -> None:
    if thread_count > 0:
        raise ReferentialConflict(
            "Cannot delete category with existing threads. Please move or delete all threads first.",
            reason=f"{thread_count} threads remain",
        )


def plan_comment_deletion(reply_count: int) -> CommentDeletion:
    """Comments with replies keep their place in the tree so the replies still have a parent."""
    if reply_count > 0:
        return CommentDeletion.TOMBSTONE
    return CommentDeletion.HARD_DELETE


def tombstone(comment) -> None:
    comment.content = TOMBSTONE_TEXT
    # article comments stay approved so the thread reads continuously
    if isinstance(comment, ArticleComment):
        comment.status = CommentStatus.APPROVED
