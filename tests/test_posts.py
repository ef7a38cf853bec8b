"""
Tests for the post lifecycle endpoints.
"""
from conftest import cdn_url, headers_for

from app.models.comment import Comment
from app.models.notification import Notification
from app.models.post import Post, PostStatus


def _create(client, headers, **fields):
    body = {"title": "Hello", "content": "First post body"}
    body.update(fields)
    response = client.post("/api/posts", headers=headers, json=body)
    assert response.status_code == 201, response.text
    return response.json()


def _notifications(db, type, **filters):
    query = db.query(Notification).filter(Notification.type == type)
    for key, value in filters.items():
        query = query.filter(getattr(Notification, key) == value)
    return query.all()


def _published(db, author, image="posts/live"):
    post = Post(
        author_id=author.id,
        title="Live title",
        content="Live content",
        featured_image=cdn_url(image),
        featured_image_public_id=image,
        status=PostStatus.PUBLISHED.value,
        likes=[],
        edit_history=[],
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


class TestCreatePost:

    def test_create_draft(self, client, auth_headers, db, moderator):
        data = _create(client, auth_headers)
        assert data["status"] == "draft"
        assert data["published_at"] is None
        assert db.query(Notification).count() == 0

    def test_member_requesting_publish_lands_in_pending(self, client, auth_headers, db, moderator, second_moderator):
        data = _create(client, auth_headers, status="published")
        assert data["status"] == "pending"

        pending = _notifications(db, "post_pending", post_id=data["id"])
        assert sorted(n.recipient_id for n in pending) == sorted([moderator.id, second_moderator.id])

    def test_moderator_can_publish_directly(self, client, moderator_headers, db, second_moderator):
        data = _create(client, moderator_headers, status="published")
        assert data["status"] == "published"
        assert data["published_at"] is not None
        assert _notifications(db, "post_pending") == []

    def test_public_id_derived_from_url(self, client, auth_headers):
        data = _create(client, auth_headers, featured_image=cdn_url("posts/cover"))
        assert data["featured_image_public_id"] == "posts/cover"

    def test_plain_user_cannot_create(self, client, reader):
        response = client.post(
            "/api/posts",
            headers=headers_for(reader),
            json={"title": "Hi", "content": "Body"},
        )
        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    def test_create_unauthenticated(self, client):
        response = client.post("/api/posts", json={"title": "Hi", "content": "Body"})
        assert response.status_code == 401
        assert response.json()["ok"] is False

    def test_title_too_long(self, client, auth_headers, db):
        response = client.post(
            "/api/posts",
            headers=auth_headers,
            json={"title": "x" * 201, "content": "Body"},
        )
        assert response.status_code == 422
        assert db.query(Post).count() == 0

    def test_unknown_status_rejected(self, client, auth_headers, db):
        response = client.post(
            "/api/posts",
            headers=auth_headers,
            json={"title": "Hi", "content": "Body", "status": "archived"},
        )
        assert response.status_code == 422
        assert db.query(Post).count() == 0


class TestAuthorEdits:

    def test_replacing_draft_image_deletes_old_one(self, client, auth_headers, storage):
        post = _create(client, auth_headers, featured_image=cdn_url("posts/old"))

        response = client.patch(
            f"/api/posts/{post['id']}",
            headers=auth_headers,
            json={"featured_image": cdn_url("posts/new")},
        )
        assert response.status_code == 200
        assert response.json()["featured_image_public_id"] == "posts/new"
        assert storage.destroyed == ["posts/old"]

    def test_submit_draft(self, client, auth_headers, db, moderator):
        post = _create(client, auth_headers)

        response = client.patch(f"/api/posts/{post['id']}", headers=auth_headers, json={"status": "pending"})
        data = response.json()
        assert data["status"] == "pending"
        assert data["edit_history"][-1]["reason"] == "Submitted for approval"
        assert len(_notifications(db, "post_pending", post_id=post["id"])) == 1

    def test_pending_edit_refreshes_moderator_notifications(self, client, auth_headers, db, moderator):
        post = _create(client, auth_headers, status="pending")
        first = _notifications(db, "post_pending", post_id=post["id"])
        assert len(first) == 1
        first_id = first[0].id

        client.patch(f"/api/posts/{post['id']}", headers=auth_headers, json={"content": "Better body"})

        latest = _notifications(db, "post_pending", post_id=post["id"])
        assert len(latest) == 1
        assert latest[0].id != first_id
        assert latest[0].title == "Post Updated for Approval"

    def test_author_cannot_publish(self, client, auth_headers):
        post = _create(client, auth_headers)
        response = client.patch(f"/api/posts/{post['id']}", headers=auth_headers, json={"status": "published"})
        assert response.status_code == 422

    def test_other_member_cannot_edit(self, client, auth_headers, other_member):
        post = _create(client, auth_headers)
        response = client.patch(
            f"/api/posts/{post['id']}",
            headers=headers_for(other_member),
            json={"title": "Mine now"},
        )
        assert response.status_code == 403

    def test_edit_missing_post(self, client, auth_headers):
        response = client.patch("/api/posts/999", headers=auth_headers, json={"title": "x"})
        assert response.status_code == 404
        assert response.json()["error"] == "Post not found"

    def test_rejected_edit_keeps_reason_until_resubmit(self, client, auth_headers, moderator_headers, db, moderator):
        post = _create(client, auth_headers, status="pending")
        client.post(f"/api/posts/{post['id']}/reject", headers=moderator_headers, json={"reason": "Too short"})

        data = client.patch(f"/api/posts/{post['id']}", headers=auth_headers, json={"content": "Longer"}).json()
        assert data["status"] == "rejected"
        assert data["rejection_reason"] == "Too short"

        data = client.patch(f"/api/posts/{post['id']}", headers=auth_headers, json={"status": "pending"}).json()
        assert data["status"] == "pending"
        assert data["rejection_reason"] is None
        assert data["edit_history"][-1]["reason"] == "Resubmitted after rejection"


class TestReview:

    def test_approve(self, client, auth_headers, moderator_headers, db, member):
        post = _create(client, auth_headers, status="pending")

        response = client.post(f"/api/posts/{post['id']}/approve", headers=moderator_headers)
        data = response.json()
        assert data["status"] == "published"
        assert data["published_at"] is not None

        approved = _notifications(db, "post_approved", post_id=post["id"])
        assert [n.recipient_id for n in approved] == [member.id]

    def test_approve_requires_pending(self, client, auth_headers, moderator_headers):
        post = _create(client, auth_headers)
        response = client.post(f"/api/posts/{post['id']}/approve", headers=moderator_headers)
        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_STATE"

    def test_member_cannot_approve(self, client, auth_headers, other_member):
        post = _create(client, auth_headers, status="pending")
        response = client.post(f"/api/posts/{post['id']}/approve", headers=headers_for(other_member))
        assert response.status_code == 403

    def test_reject_deletes_image(self, client, auth_headers, moderator_headers, db, storage, member, moderator):
        post = _create(client, auth_headers, status="pending", featured_image=cdn_url("posts/cover"))

        response = client.post(
            f"/api/posts/{post['id']}/reject",
            headers=moderator_headers,
            json={"reason": "duplicate content"},
        )
        data = response.json()
        assert data["status"] == "rejected"
        assert data["rejection_reason"] == "duplicate content"
        assert data["featured_image_public_id"] is None
        assert storage.destroyed == ["posts/cover"]

        rejected = _notifications(db, "post_rejected", post_id=post["id"])
        assert len(rejected) == 1
        assert rejected[0].recipient_id == member.id
        assert rejected[0].to_dict()["metadata"]["rejection_reason"] == "duplicate content"

    def test_reject_requires_reason(self, client, auth_headers, moderator_headers, db, storage):
        post = _create(client, auth_headers, status="pending", featured_image=cdn_url("posts/cover"))

        response = client.post(f"/api/posts/{post['id']}/reject", headers=moderator_headers, json={})
        assert response.status_code == 422
        assert storage.destroyed == []
        assert db.get(Post, post["id"]).status == "pending"


class TestPublishedEdits:

    def test_author_edit_is_held_for_review(self, client, auth_headers, db, storage, member, moderator, second_moderator):
        post = _published(db, member)

        response = client.patch(
            f"/api/posts/{post.id}",
            headers=auth_headers,
            json={"title": "New title", "featured_image": cdn_url("posts/proposed")},
        )
        data = response.json()
        assert data["title"] == "Live title"
        assert data["featured_image_public_id"] == "posts/live"
        assert data["pending_edit"]["title"] == "New title"
        assert data["pending_edit"]["content"] == "Live content"
        assert data["pending_edit"]["featured_image_public_id"] == "posts/proposed"
        assert data["pending_edit"]["submitted_at"]
        assert storage.destroyed == []
        assert len(_notifications(db, "post_edit_request", post_id=post.id)) == 2

    def test_second_request_overwrites_snapshot(self, client, auth_headers, db, member, moderator, second_moderator):
        post = _published(db, member)

        client.patch(f"/api/posts/{post.id}", headers=auth_headers, json={"title": "First try"})
        data = client.patch(f"/api/posts/{post.id}", headers=auth_headers, json={"content": "Second try"}).json()

        assert data["pending_edit"]["content"] == "Second try"
        assert data["pending_edit"]["title"] == "Live title"
        assert len(_notifications(db, "post_edit_request", post_id=post.id)) == 2

    def test_replaced_request_drops_its_image(self, client, auth_headers, db, storage, member, moderator):
        post = _published(db, member)

        client.patch(f"/api/posts/{post.id}", headers=auth_headers, json={"featured_image": cdn_url("posts/first")})
        data = client.patch(
            f"/api/posts/{post.id}",
            headers=auth_headers,
            json={"featured_image": cdn_url("posts/second")},
        ).json()

        assert data["pending_edit"]["featured_image_public_id"] == "posts/second"
        assert data["featured_image_public_id"] == "posts/live"
        assert storage.destroyed == ["posts/first"]

    def test_replaced_request_keeps_image_it_shares(self, client, auth_headers, db, storage, member, moderator):
        post = _published(db, member)

        client.patch(f"/api/posts/{post.id}", headers=auth_headers, json={"featured_image": cdn_url("posts/first")})
        client.patch(
            f"/api/posts/{post.id}",
            headers=auth_headers,
            json={"title": "Retitled", "featured_image": cdn_url("posts/first")},
        )
        client.patch(f"/api/posts/{post.id}", headers=auth_headers, json={"title": "Back to live image"})

        assert storage.destroyed == ["posts/first"]

    def test_approve_edit(self, client, auth_headers, moderator_headers, db, storage, member, moderator):
        post = _published(db, member)
        client.patch(
            f"/api/posts/{post.id}",
            headers=auth_headers,
            json={"title": "New title", "content": "New content", "featured_image": cdn_url("posts/proposed")},
        )

        response = client.post(f"/api/posts/{post.id}/approve-edit", headers=moderator_headers)
        data = response.json()
        assert data["title"] == "New title"
        assert data["content"] == "New content"
        assert data["featured_image_public_id"] == "posts/proposed"
        assert data["pending_edit"] is None
        assert data["is_edited"] is True
        assert storage.destroyed == ["posts/live"]
        assert _notifications(db, "post_edit_request", post_id=post.id) == []
        approved = _notifications(db, "post_edit_approved", post_id=post.id)
        assert [n.recipient_id for n in approved] == [member.id]

    def test_reject_edit(self, client, auth_headers, moderator_headers, db, storage, member, moderator):
        post = _published(db, member)
        client.patch(
            f"/api/posts/{post.id}",
            headers=auth_headers,
            json={"title": "New title", "featured_image": cdn_url("posts/proposed")},
        )

        response = client.post(
            f"/api/posts/{post.id}/reject-edit",
            headers=moderator_headers,
            json={"reason": "Keep the original"},
        )
        data = response.json()
        assert data["title"] == "Live title"
        assert data["featured_image_public_id"] == "posts/live"
        assert data["pending_edit"] is None
        assert storage.destroyed == ["posts/proposed"]
        rejected = _notifications(db, "post_edit_rejected", post_id=post.id)
        assert rejected[0].to_dict()["metadata"]["rejection_reason"] == "Keep the original"

    def test_reject_edit_keeps_shared_image(self, client, auth_headers, moderator_headers, db, storage, member, moderator):
        post = _published(db, member)
        client.patch(f"/api/posts/{post.id}", headers=auth_headers, json={"title": "New title"})

        client.post(f"/api/posts/{post.id}/reject-edit", headers=moderator_headers, json={})
        assert storage.destroyed == []

    def test_approve_edit_without_request(self, client, moderator_headers, db, member):
        post = _published(db, member)
        response = client.post(f"/api/posts/{post.id}/approve-edit", headers=moderator_headers)
        assert response.status_code == 409

    def test_pending_edits_queue(self, client, auth_headers, moderator_headers, db, member, moderator):
        quiet = _published(db, member, image="posts/quiet")
        edited = _published(db, member, image="posts/edited")
        client.patch(f"/api/posts/{edited.id}", headers=auth_headers, json={"title": "Changed"})

        response = client.get("/api/posts/pending-edits", headers=moderator_headers)
        ids = [p["id"] for p in response.json()]
        assert ids == [edited.id]
        assert quiet.id not in ids


class TestModeratorEdits:

    def test_moderator_edit_applies_immediately(self, client, moderator_headers, db, storage, member):
        post = _published(db, member)

        response = client.patch(
            f"/api/posts/{post.id}",
            headers=moderator_headers,
            json={"title": "Fixed typo", "featured_image": cdn_url("posts/fixed")},
        )
        data = response.json()
        assert data["title"] == "Fixed typo"
        assert data["pending_edit"] is None
        assert data["is_edited"] is True
        assert data["edit_history"][-1]["reason"] == "Admin edit"
        assert storage.destroyed == ["posts/live"]

    def test_unpublishing_discards_pending_edit(self, client, auth_headers, moderator_headers, db, storage, member, moderator):
        post = _published(db, member)
        client.patch(
            f"/api/posts/{post.id}",
            headers=auth_headers,
            json={"featured_image": cdn_url("posts/proposed")},
        )

        data = client.patch(f"/api/posts/{post.id}", headers=moderator_headers, json={"status": "draft"}).json()
        assert data["status"] == "draft"
        assert data["pending_edit"] is None
        assert storage.destroyed == ["posts/proposed"]
        assert _notifications(db, "post_edit_request", post_id=post.id) == []

    def test_last_write_wins_between_moderators(self, client, moderator_headers, db, member, second_moderator):
        """No version check: two moderators editing the same post both succeed and the later write is kept."""
        post = _published(db, member)

        first = client.patch(f"/api/posts/{post.id}", headers=moderator_headers, json={"title": "Version A"})
        second = client.patch(
            f"/api/posts/{post.id}",
            headers=headers_for(second_moderator),
            json={"title": "Version B"},
        )
        assert first.status_code == second.status_code == 200
        assert db.get(Post, post.id).title == "Version B"
        assert len(second.json()["edit_history"]) == 2


class TestDeleteAndLike:

    def test_delete_cascades(self, client, auth_headers, moderator_headers, db, storage, member, moderator, reader):
        post = _published(db, member)
        client.patch(f"/api/posts/{post.id}", headers=auth_headers, json={"featured_image": cdn_url("posts/proposed")})
        client.post(f"/api/posts/{post.id}/like", headers=headers_for(reader))
        db.add(Comment(post_id=post.id, author_id=reader.id, content="Nice"))
        db.commit()
        assert db.query(Notification).filter(Notification.post_id == post.id).count() > 0

        response = client.delete(f"/api/posts/{post.id}", headers=auth_headers)
        assert response.status_code == 200
        assert db.query(Post).count() == 0
        assert db.query(Comment).count() == 0
        assert db.query(Notification).filter(Notification.post_id == post.id).count() == 0
        assert sorted(storage.destroyed) == ["posts/live", "posts/proposed"]

    def test_delete_succeeds_when_storage_fails(self, client, auth_headers, db, storage, member):
        post = _published(db, member)
        storage.failing.add("posts/live")

        response = client.delete(f"/api/posts/{post.id}", headers=auth_headers)
        assert response.status_code == 200
        assert db.query(Post).count() == 0

    def test_other_member_cannot_delete(self, client, db, member, other_member):
        post = _published(db, member)
        response = client.delete(f"/api/posts/{post.id}", headers=headers_for(other_member))
        assert response.status_code == 403
        assert db.query(Post).count() == 1

    def test_like_toggle(self, client, db, member, reader):
        post = _published(db, member)

        liked = client.post(f"/api/posts/{post.id}/like", headers=headers_for(reader)).json()
        assert liked["liked"] is True
        assert liked["likes"] == 1
        assert len(_notifications(db, "post_liked", recipient_id=member.id)) == 1

        unliked = client.post(f"/api/posts/{post.id}/like", headers=headers_for(reader)).json()
        assert unliked["liked"] is False
        assert unliked["likes"] == 0

    def test_liking_own_post_does_not_notify(self, client, auth_headers, db, member):
        post = _published(db, member)
        client.post(f"/api/posts/{post.id}/like", headers=auth_headers)
        assert _notifications(db, "post_liked") == []


class TestReads:

    def test_published_list_and_search(self, client, auth_headers, db, member):
        _published(db, member)
        _create(client, auth_headers, title="Unpublished draft")

        response = client.get("/api/posts")
        data = response.json()
        assert data["pagination"]["total"] == 1
        assert data["data"][0]["title"] == "Live title"

        assert client.get("/api/posts", params={"search": "nothing"}).json()["data"] == []

    def test_single_post_counts_views(self, client, db, member):
        post = _published(db, member)
        client.get(f"/api/posts/{post.id}")
        data = client.get(f"/api/posts/{post.id}").json()
        assert data["views"] == 2

    def test_draft_not_public(self, client, auth_headers):
        post = _create(client, auth_headers)
        assert client.get(f"/api/posts/{post['id']}").status_code == 404
        assert client.get(f"/api/posts/{post['id']}/edit", headers=auth_headers).status_code == 200

    def test_edit_view_is_private(self, client, auth_headers, other_member):
        post = _create(client, auth_headers)
        response = client.get(f"/api/posts/{post['id']}/edit", headers=headers_for(other_member))
        assert response.status_code == 403

    def test_my_posts_filter(self, client, auth_headers):
        _create(client, auth_headers)
        _create(client, auth_headers, status="pending")

        data = client.get("/api/posts/mine", headers=auth_headers, params={"status": "pending"}).json()
        assert [p["status"] for p in data["data"]] == ["pending"]

    def test_pending_queue_is_moderator_only(self, client, auth_headers, moderator_headers):
        _create(client, auth_headers, status="pending")
        assert client.get("/api/posts/pending", headers=auth_headers).status_code == 403
        assert len(client.get("/api/posts/pending", headers=moderator_headers).json()) == 1

    def test_status_always_known(self, client, auth_headers, moderator_headers, db, moderator):
        post = _create(client, auth_headers, status="pending")
        client.post(f"/api/posts/{post['id']}/reject", headers=moderator_headers, json={"reason": "No"})
        client.patch(f"/api/posts/{post['id']}", headers=auth_headers, json={"status": "pending"})
        client.post(f"/api/posts/{post['id']}/approve", headers=moderator_headers)

        valid = {s.value for s in PostStatus}
        assert {p.status for p in db.query(Post).all()} <= valid
