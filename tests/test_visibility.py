"""
Tests for who may see which content
"""
import pytest

from beekeeper.models.article import Article, ArticleStatus
from beekeeper.models.forum import ForumCategory, ForumThread, ForumComment
from beekeeper.policy.roles import Role
from beekeeper.policy.visibility import (
    can_view,
    can_view_forum_comment,
    can_view_thread,
    filter_visible,
    require_identity,
)
from beekeeper.utils.exceptions import AuthenticationRequired
from helpers import identity

OWNER_ID = 1
ADMIN = identity(99, Role.ADMIN)
OWNER = identity(OWNER_ID, Role.AUTHOR)
OTHER_AUTHOR = identity(2, Role.AUTHOR)
READER = identity(3, Role.USER)
CALLERS = [ADMIN, OWNER, OTHER_AUTHOR, READER, None]


def entities(blocked):
    return [
        Article(owner_id=OWNER_ID, is_blocked=blocked, status=ArticleStatus.PUBLISHED),
        ForumCategory(owner_id=OWNER_ID, is_blocked=blocked),
        ForumThread(owner_id=OWNER_ID, is_blocked=blocked),
        ForumComment(owner_id=OWNER_ID, is_blocked=blocked),
    ]


class TestCanView:
    """Admin, owner and public visibility rules"""

    @pytest.mark.parametrize("caller", CALLERS)
    def test_unblocked_content_is_visible_to_everyone(self, caller):
        for entity in entities(blocked=False):
            assert can_view(entity, caller)

    @pytest.mark.parametrize("caller,expected", [
        (ADMIN, True),
        (OWNER, True),
        (OTHER_AUTHOR, False),
        (READER, False),
        (None, False),
    ])
    def test_blocked_content_visibility(self, caller, expected):
        for entity in entities(blocked=True):
            assert can_view(entity, caller) is expected

    def test_owner_sees_own_blocked_content_when_others_cannot(self):
        article = Article(owner_id=OWNER_ID, is_blocked=True, status=ArticleStatus.PUBLISHED)
        assert can_view(article, OWNER)
        assert not can_view(article, OTHER_AUTHOR)

    def test_unpublished_article_hidden_from_public_but_not_owner(self):
        draft = Article(owner_id=OWNER_ID, is_blocked=False, status=ArticleStatus.DRAFT)
        assert not can_view(draft, None)
        assert not can_view(draft, READER)
        assert can_view(draft, OWNER)
        assert can_view(draft, ADMIN)

    @pytest.mark.parametrize("caller", [OWNER, OTHER_AUTHOR, READER, None])
    def test_admin_view_is_superset(self, caller):
        items = entities(blocked=False) + entities(blocked=True)
        items.append(Article(owner_id=5, is_blocked=True, status=ArticleStatus.DRAFT))

        admin_view = filter_visible(items, ADMIN)
        caller_view = filter_visible(items, caller)

        assert len(admin_view) == len(items)
        assert all(item in admin_view for item in caller_view)


class TestCompositeVisibility:
    """Threads and comments inherit their containers' visibility"""

    def test_thread_in_blocked_category_is_hidden(self):
        category = ForumCategory(owner_id=50, is_blocked=True)
        thread = ForumThread(owner_id=OWNER_ID, is_blocked=False)

        assert not can_view_thread(thread, category, READER)
        # owning the thread is not enough when the category is hidden
        assert not can_view_thread(thread, category, OWNER)
        assert can_view_thread(thread, category, ADMIN)

    def test_comment_in_blocked_thread_is_hidden(self):
        category = ForumCategory(owner_id=50, is_blocked=False)
        thread = ForumThread(owner_id=50, is_blocked=True)
        comment = ForumComment(owner_id=READER.id, is_blocked=False)

        assert not can_view_forum_comment(comment, thread, category, READER)
        assert can_view_forum_comment(comment, thread, category, ADMIN)

    def test_comment_visible_when_whole_chain_is_visible(self):
        category = ForumCategory(owner_id=50, is_blocked=False)
        thread = ForumThread(owner_id=50, is_blocked=False)
        comment = ForumComment(owner_id=50, is_blocked=False)

        assert can_view_forum_comment(comment, thread, category, None)


class TestRequireIdentity:

    def test_anonymous_rejected(self):
        with pytest.raises(AuthenticationRequired):
            require_identity(None, "forum threads")

    def test_identity_passes_through(self):
        assert require_identity(READER) is READER
