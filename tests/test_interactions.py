"""
Votes, bookmarks, reading history and threaded comments.
"""
from conftest import signin, signup, USER_PASSWORD


def _vote(client, headers, content_id, vote, content_type="book"):
    return client.post("/api/ratings", json={"content_type": content_type, "content_id": content_id, "vote": vote},
                       headers=headers)


class TestVotes:
    def test_toggle_semantics(self, client, user_headers, book):
        response = _vote(client, user_headers, book["id"], "up")
        assert response.status_code == 201
        body = response.json()
        assert (body["action"], body["message"]) == ("created", "Vote recorded")
        assert (body["up_votes"], body["down_votes"], body["user_vote"]) == (1, 0, 1)

        response = _vote(client, user_headers, book["id"], "down")
        assert response.status_code == 200
        body = response.json()
        assert (body["action"], body["message"]) == ("updated", "Vote updated")
        assert (body["up_votes"], body["down_votes"], body["user_vote"]) == (0, 1, -1)

        response = _vote(client, user_headers, book["id"], "down")
        body = response.json()
        assert (body["action"], body["message"]) == ("removed", "Vote removed")
        assert (body["up_votes"], body["down_votes"], body["user_vote"]) == (0, 0, None)

    def test_tally_across_users(self, client, user_headers, book):
        _vote(client, user_headers, book["id"], "up")
        signup(client, "second")
        second = signin(client, "second", USER_PASSWORD)
        _vote(client, second, book["id"], "down")

        tally = client.get("/api/ratings", params={"content_type": "book", "content_id": book["id"]}).json()
        assert (tally["up_votes"], tally["down_votes"], tally["user_vote"]) == (1, 1, None)

        tally = client.get("/api/ratings", params={"content_type": "book", "content_id": book["id"]},
                           headers=user_headers).json()
        assert tally["user_vote"] == 1

        listed = client.get("/api/books", headers=second).json()["books"][0]
        assert (listed["up_votes"], listed["down_votes"], listed["user_vote"]) == (1, 1, -1)

    def test_tutorial_votes(self, client, user_headers, tutorial):
        assert _vote(client, user_headers, tutorial["id"], "up", "tutorial").status_code == 201
        assert client.get(f"/api/tutorials/{tutorial['id']}").json()["up_votes"] == 1

    def test_vote_on_missing_content(self, client, user_headers):
        response = _vote(client, user_headers, 9999, "up")
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Book not found"

    def test_invalid_vote_value(self, client, user_headers, book):
        assert _vote(client, user_headers, book["id"], "sideways").status_code == 422

    def test_requires_auth(self, client, book):
        assert _vote(client, {}, book["id"], "up").status_code in (401, 403)


class TestBookmarks:
    def test_add_is_idempotent(self, client, user_headers, book):
        ref = {"content_type": "book", "content_id": book["id"]}
        first = client.post("/api/bookmarks", json=ref, headers=user_headers)
        assert first.status_code == 201
        assert first.json()["title"] == "Clean Code"

        second = client.post("/api/bookmarks", json=ref, headers=user_headers)
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]

        bookmarks = client.get("/api/bookmarks", headers=user_headers).json()["bookmarks"]
        assert len(bookmarks) == 1

    def test_remove(self, client, user_headers, tutorial):
        client.post("/api/bookmarks", json={"content_type": "tutorial", "content_id": tutorial["id"]},
                    headers=user_headers)

        response = client.delete(f"/api/bookmarks/tutorial/{tutorial['id']}", headers=user_headers)
        assert response.json()["message"] == "Bookmark removed"

        response = client.delete(f"/api/bookmarks/tutorial/{tutorial['id']}", headers=user_headers)
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Bookmark not found"

    def test_bookmarks_are_private(self, client, user_headers, book):
        client.post("/api/bookmarks", json={"content_type": "book", "content_id": book["id"]}, headers=user_headers)
        signup(client, "other")
        other = signin(client, "other", USER_PASSWORD)
        assert client.get("/api/bookmarks", headers=other).json()["bookmarks"] == []


class TestReadingHistory:
    def test_progress_upsert(self, client, user_headers, book):
        ref = {"content_type": "book", "content_id": book["id"]}
        response = client.put("/api/reading-history", json={**ref, "progress": "Chapter 2"}, headers=user_headers)
        assert response.status_code == 200
        first_id = response.json()["id"]

        response = client.put("/api/reading-history", json={**ref, "progress": "Chapter 5"}, headers=user_headers)
        assert response.json()["id"] == first_id
        assert response.json()["progress"] == "Chapter 5"

        history = client.get("/api/reading-history", headers=user_headers).json()["history"]
        assert [(entry["title"], entry["progress"]) for entry in history] == [("Clean Code", "Chapter 5")]


class TestComments:
    def _comment(self, client, headers, book_id, text, parent=None):
        payload = {"content_type": "book", "content_id": book_id, "comment_text": text}
        if parent:
            payload["parent_comment_id"] = parent
        response = client.post("/api/comments", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["comment"]

    def test_thread_shape(self, client, user_headers, book):
        first = self._comment(client, user_headers, book["id"], "First!")
        second = self._comment(client, user_headers, book["id"], "Second")
        reply_a = self._comment(client, user_headers, book["id"], "Reply A", parent=first["id"])
        self._comment(client, user_headers, book["id"], "Reply B", parent=first["id"])
        self._comment(client, user_headers, book["id"], "Nested", parent=reply_a["id"])

        body = client.get("/api/comments", params={"content_type": "book", "content_id": book["id"]}).json()
        assert body["total_count"] == 5
        assert [c["id"] for c in body["comments"]] == [second["id"], first["id"]]

        thread = body["comments"][1]
        assert thread["reply_count"] == 2
        assert [r["comment_text"] for r in thread["replies"]] == ["Reply A", "Reply B"]
        assert thread["replies"][0]["replies"][0]["comment_text"] == "Nested"
        assert thread["author_username"] == "reader"

        paged = client.get("/api/comments", params={
            "content_type": "book", "content_id": book["id"], "skip": 1, "limit": 1
        }).json()
        assert [c["id"] for c in paged["comments"]] == [first["id"]]

        assert client.get("/api/books/%d" % book["id"]).json()["comment_count"] == 5

    def test_reply_to_unknown_parent(self, client, user_headers, book):
        response = client.post("/api/comments", json={
            "content_type": "book", "content_id": book["id"], "comment_text": "Hi", "parent_comment_id": 9999
        }, headers=user_headers)
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Parent comment not found"

    def test_only_owner_or_staff_can_modify(self, client, admin_headers, user_headers, book):
        comment = self._comment(client, user_headers, book["id"], "Mine")
        signup(client, "stranger")
        stranger = signin(client, "stranger", USER_PASSWORD)

        response = client.put(f"/api/comments/{comment['id']}", json={"comment_text": "Hijack"}, headers=stranger)
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Not authorized to modify this comment"

        response = client.put(f"/api/comments/{comment['id']}", json={"comment_text": "Edited"}, headers=user_headers)
        assert response.json()["comment_text"] == "Edited"

        response = client.delete(f"/api/comments/{comment['id']}", headers=admin_headers)
        assert response.json()["message"] == "Comment deleted successfully"

    def test_deleting_parent_removes_replies(self, client, user_headers, book):
        parent = self._comment(client, user_headers, book["id"], "Parent")
        self._comment(client, user_headers, book["id"], "Child", parent=parent["id"])

        client.delete(f"/api/comments/{parent['id']}", headers=user_headers)
        body = client.get("/api/comments", params={"content_type": "book", "content_id": book["id"]}).json()
        assert body == {"comments": [], "total_count": 0}

    def test_script_content_rejected(self, client, user_headers, book):
        response = client.post("/api/comments", json={
            "content_type": "book", "content_id": book["id"], "comment_text": "<script>alert(1)</script>"
        }, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Input contains potentially dangerous content"
