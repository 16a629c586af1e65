"""
Tests for the block, lock and pin transitions
"""
from datetime import datetime, timezone

import pytest

from beekeeper.models.article import Article, ArticleStatus
from beekeeper.models.forum import ForumCategory, ForumThread, ForumComment
from beekeeper.policy import moderation
from beekeeper.policy.moderation import DEFAULT_BLOCK_REASON
from beekeeper.policy.roles import Role
from beekeeper.utils.exceptions import Forbidden, InvalidState, NotFound
from helpers import identity

ADMIN = identity(1, Role.ADMIN)
AUTHOR = identity(2, Role.AUTHOR)


def new_article():
    return Article(id=10, owner_id=AUTHOR.id, is_blocked=False, status=ArticleStatus.PUBLISHED)


def new_thread(**kwargs):
    fields = dict(id=20, owner_id=AUTHOR.id, is_blocked=False, is_locked=False, is_pinned=False, category_id=1)
    fields.update(kwargs)
    return ForumThread(**fields)


def assert_consistent(entity):
    assert entity.is_blocked == (entity.blocked_at is not None and entity.blocked_by is not None)


class TestBlock:
    """Block metadata and who may set it"""

    def test_block_records_metadata(self):
        article = new_article()
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)

        message = moderation.block(article, ADMIN, "spam", now=now)

        assert message == "Article blocked successfully"
        assert article.is_blocked
        assert article.blocked_at == now
        assert article.blocked_by == ADMIN.id
        assert article.blocked_reason == "spam"

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_empty_reason_gets_placeholder(self, reason):
        comment = ForumComment(id=1, owner_id=AUTHOR.id, is_blocked=False)
        moderation.block(comment, ADMIN, reason)
        assert comment.blocked_reason == DEFAULT_BLOCK_REASON

    def test_unblock_clears_metadata(self):
        article = new_article()
        moderation.block(article, ADMIN, "spam")

        message = moderation.unblock(article, ADMIN)

        assert message == "Article unblocked successfully"
        assert not article.is_blocked
        assert article.blocked_at is None
        assert article.blocked_by is None
        assert article.blocked_reason is None

    @pytest.mark.parametrize("actor", [AUTHOR, identity(3, Role.USER), None])
    def test_non_admin_cannot_block_and_nothing_changes(self, actor):
        article = new_article()
        with pytest.raises(Forbidden):
            moderation.block(article, actor, "spam")
        assert not article.is_blocked
        assert article.blocked_at is None

    def test_fields_stay_consistent_over_any_sequence(self):
        entities = [new_article(), ForumCategory(id=1, owner_id=2, is_blocked=False),
                    new_thread(), ForumComment(id=3, owner_id=2, is_blocked=False)]
        sequence = [True, True, False, True, False, False, True]

        for entity in entities:
            for blocked in sequence:
                try:
                    moderation.set_blocked(entity, ADMIN, blocked, "reason")
                except InvalidState:
                    pass
                assert_consistent(entity)


class TestBlockPolicies:
    """Articles are strict about repeated transitions, forum kinds are idempotent"""

    def test_article_reblock_rejected(self):
        article = new_article()
        moderation.block(article, ADMIN, "first")

        with pytest.raises(InvalidState, match="already blocked"):
            moderation.block(article, ADMIN, "second")
        assert article.blocked_reason == "first"

    def test_article_unblock_when_active_rejected(self):
        with pytest.raises(InvalidState, match="not blocked"):
            moderation.unblock(new_article(), ADMIN)

    def test_thread_reblock_overwrites_metadata(self):
        thread = new_thread()
        moderation.block(thread, ADMIN, "first")
        second_admin = identity(7, Role.ADMIN)

        moderation.block(thread, second_admin, "second")

        assert thread.blocked_reason == "second"
        assert thread.blocked_by == second_admin.id

    def test_category_unblock_when_active_is_noop(self):
        category = ForumCategory(id=1, owner_id=2, is_blocked=False)
        moderation.unblock(category, ADMIN)
        assert not category.is_blocked
        assert_consistent(category)


class TestThreadFlags:
    """Lock, pin and move are independent of the block state"""

    def test_lock_and_pin_are_independent(self):
        thread = new_thread()
        moderation.set_locked(thread, ADMIN, True)
        moderation.set_pinned(thread, ADMIN, True)
        moderation.block(thread, ADMIN, "spam")

        moderation.set_locked(thread, ADMIN, False)

        assert not thread.is_locked
        assert thread.is_pinned
        assert thread.is_blocked

    def test_author_cannot_lock_own_thread(self):
        thread = new_thread()
        with pytest.raises(Forbidden):
            moderation.set_locked(thread, AUTHOR, True)
        assert not thread.is_locked

    def test_move_to_missing_category(self):
        thread = new_thread()
        with pytest.raises(NotFound):
            moderation.move(thread, ADMIN, None)
        assert thread.category_id == 1

    def test_move_into_blocked_category_allowed(self):
        thread = new_thread()
        target = ForumCategory(id=5, owner_id=1, is_blocked=True)
        moderation.move(thread, ADMIN, target)
        assert thread.category_id == 5

    @pytest.mark.parametrize("locked,blocked,accepts", [
        (False, False, True),
        (True, False, False),
        (False, True, False),
        (True, True, False),
    ])
    def test_accepts_comments(self, locked, blocked, accepts):
        thread = new_thread(is_locked=locked, is_blocked=blocked)
        assert moderation.accepts_comments(thread) is accepts

    def test_locked_thread_refuses_comments_for_admin_too(self):
        with pytest.raises(Forbidden):
            moderation.ensure_accepts_comments(new_thread(is_locked=True))

    def test_locked_thread_editable_only_by_admin(self):
        thread = new_thread(is_locked=True)
        with pytest.raises(Forbidden):
            moderation.ensure_thread_editable(thread, AUTHOR)
        moderation.ensure_thread_editable(thread, ADMIN)
