"""
End-to-end tests for articles, article moderation and article comments
"""
from beekeeper.models.article import Article, ArticleStatus
from beekeeper.models.comment import ArticleComment, CommentStatus
from beekeeper.policy.cascade import TOMBSTONE_TEXT
from helpers import auth_headers


async def block(client, admin, article, reason="spam"):
    return await client.put(
        f"/admin/articles/{article.id}/block", json={"reason": reason}, headers=auth_headers(admin)
    )


class TestBlockedArticle:
    """Admin blocks an article; each audience sees something different"""

    async def test_block_then_read_as_each_audience(self, client, admin, author, reader, article):
        response = await block(client, admin, article)
        assert response.status_code == 200
        assert response.json()["message"] == "Article blocked successfully"

        anonymous = await client.get(f"/articles/{article.slug}")
        assert anonymous.status_code == 404
        assert anonymous.json() == {"success": False, "message": "Article not found"}

        other = await client.get(f"/articles/{article.slug}", headers=auth_headers(reader))
        assert other.status_code == 404

        owner = await client.get(f"/articles/{article.slug}", headers=auth_headers(author))
        assert owner.status_code == 200
        data = owner.json()["data"]
        assert data["is_blocked"] is True
        assert data["blocked_reason"] == "spam"

        as_admin = await client.get(f"/articles/{article.slug}", headers=auth_headers(admin))
        assert as_admin.status_code == 200
        data = as_admin.json()["data"]
        assert data["title"] == article.title
        assert data["blocked_by"] == admin.id

    async def test_editor_fetch_of_hidden_article_is_forbidden(self, client, admin, reader, article):
        await block(client, admin, article)
        response = await client.get(f"/articles/byId/{article.id}", headers=auth_headers(reader))
        assert response.status_code == 403

    async def test_blocked_article_missing_from_public_list(self, client, admin, author, article, seed):
        await seed(Article(
            title="Varroa counts", slug="varroa-counts", content="Sugar roll monthly.",
            status=ArticleStatus.PUBLISHED, owner_id=author.id, view_count=0,
        ))
        await block(client, admin, article)

        public = await client.get("/articles/")
        assert [a["slug"] for a in public.json()["data"]] == ["varroa-counts"]
        assert public.json()["pagination"]["total"] == 1

        owner = await client.get("/articles/", headers=auth_headers(author))
        assert owner.json()["pagination"]["total"] == 2

        blocked_only = await client.get("/articles/?status=blocked", headers=auth_headers(admin))
        assert [a["slug"] for a in blocked_only.json()["data"]] == [article.slug]

    async def test_reblock_and_unblock_of_active_article_rejected(self, client, admin, article):
        assert (await block(client, admin, article)).status_code == 200
        again = await block(client, admin, article, "again")
        assert again.status_code == 400
        assert again.json()["message"] == "Article is already blocked"

        assert (await client.put(f"/admin/articles/{article.id}/unblock", headers=auth_headers(admin))).status_code == 200
        second = await client.put(f"/admin/articles/{article.id}/unblock", headers=auth_headers(admin))
        assert second.status_code == 400

    async def test_author_cannot_block(self, client, author, article, fetch):
        response = await block(client, author, article)
        assert response.status_code == 403
        assert not (await fetch(Article, article.id)).is_blocked

    async def test_blocked_listing(self, client, admin, article):
        await block(client, admin, article)
        response = await client.get("/admin/articles/blocked", headers=auth_headers(admin))
        assert [a["id"] for a in response.json()["data"]] == [article.id]


class TestArticleCrud:

    async def test_public_read_counts_views(self, client, article, fetch):
        first = await client.get(f"/articles/{article.slug}")
        assert first.json()["data"]["view_count"] == 1
        await client.get(f"/articles/{article.slug}")
        assert (await fetch(Article, article.id)).view_count == 2

    async def test_author_creates_article(self, client, author):
        response = await client.post("/articles/", headers=auth_headers(author), json={
            "title": "Winter feeding",
            "content": "Fondant over the cluster.",
            "status": "published",
        })
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["slug"] == "winter-feeding"
        assert data["owner_id"] == author.id
        assert data["published_at"] is not None

    async def test_reader_cannot_create_article(self, client, reader):
        response = await client.post("/articles/", headers=auth_headers(reader), json={
            "title": "Winter feeding", "content": "Fondant over the cluster.",
        })
        assert response.status_code == 403

    async def test_anonymous_cannot_create_article(self, client):
        response = await client.post("/articles/", json={"title": "Winter feeding", "content": "Fondant."})
        assert response.status_code == 401

    async def test_non_owner_cannot_edit(self, client, other_author, article, fetch):
        response = await client.put(
            f"/articles/{article.id}", headers=auth_headers(other_author), json={"title": "Hijacked"}
        )
        assert response.status_code == 403
        assert (await fetch(Article, article.id)).title == article.title

    async def test_owner_edit_renames_slug(self, client, author, article):
        response = await client.put(
            f"/articles/{article.id}", headers=auth_headers(author), json={"title": "Summer hive inspection"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["slug"] == "summer-hive-inspection"

    async def test_delete_removes_comments(self, client, author, reader, article, seed, fetch):
        comment = await seed(ArticleComment(article_id=article.id, owner_id=reader.id, content="Nice"))
        response = await client.delete(f"/articles/{article.id}", headers=auth_headers(author))
        assert response.status_code == 200
        assert await fetch(Article, article.id) is None
        assert await fetch(ArticleComment, comment.id) is None


class TestArticleComments:

    async def test_new_comment_awaits_moderation(self, client, reader, article):
        response = await client.post("/comments/", headers=auth_headers(reader), json={
            "content": "Great tips", "article_id": article.id,
        })
        assert response.status_code == 201
        assert response.json()["data"]["status"] == "pending"

        listed = await client.get(f"/comments/article/{article.id}")
        assert listed.json()["data"] == []

    async def test_cannot_comment_on_blocked_article(self, client, admin, reader, author, article):
        await block(client, admin, article)
        for user in (reader, author):
            response = await client.post("/comments/", headers=auth_headers(user), json={
                "content": "Hello", "article_id": article.id,
            })
            assert response.status_code in (403, 404)

    async def test_reply_must_share_article(self, client, reader, author, article, seed):
        elsewhere = await seed(Article(
            title="Elsewhere", slug="elsewhere", content="Other", status=ArticleStatus.PUBLISHED,
            owner_id=author.id, view_count=0,
        ))
        parent = await seed(ArticleComment(
            article_id=elsewhere.id, owner_id=author.id, content="Parent", status=CommentStatus.APPROVED,
        ))
        response = await client.post("/comments/", headers=auth_headers(reader), json={
            "content": "Reply", "article_id": article.id, "parent_id": parent.id,
        })
        assert response.status_code == 400

    async def test_admin_approves_and_reader_edit_resets(self, client, admin, reader, article, seed):
        comment = await seed(ArticleComment(article_id=article.id, owner_id=reader.id, content="First"))

        approved = await client.put(
            f"/comments/{comment.id}/status", headers=auth_headers(admin), json={"status": "approved"}
        )
        assert approved.json()["data"]["status"] == "approved"
        assert len((await client.get(f"/comments/article/{article.id}")).json()["data"]) == 1

        edited = await client.put(
            f"/comments/{comment.id}", headers=auth_headers(reader), json={"content": "Edited"}
        )
        assert edited.json()["data"]["status"] == "pending"

    async def test_delete_with_replies_leaves_tombstone(self, client, reader, author, article, seed, fetch):
        parent = await seed(ArticleComment(
            article_id=article.id, owner_id=reader.id, content="Parent", status=CommentStatus.APPROVED,
        ))
        reply = await seed(ArticleComment(
            article_id=article.id, owner_id=author.id, parent_id=parent.id, content="Reply",
            status=CommentStatus.APPROVED,
        ))

        response = await client.delete(f"/comments/{parent.id}", headers=auth_headers(reader))
        assert response.status_code == 200
        assert (await fetch(ArticleComment, parent.id)).content == TOMBSTONE_TEXT
        assert (await fetch(ArticleComment, reply.id)).parent_id == parent.id

        leaf = await client.delete(f"/comments/{reply.id}", headers=auth_headers(author))
        assert leaf.status_code == 200
        assert await fetch(ArticleComment, reply.id) is None

    async def test_review_queue_is_admin_only(self, client, reader, admin):
        assert (await client.get("/comments/", headers=auth_headers(reader))).status_code == 403
        assert (await client.get("/comments/?status=pending", headers=auth_headers(admin))).status_code == 200
