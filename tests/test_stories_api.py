"""API tests for publishing, browsing, likes, comments and generation."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from novelhub.core.config import Settings

CONTENT_100 = "a" * 100
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class TestCreateStory:
    def test_create_returns_author_populated_story(self, client: TestClient, api) -> None:
        alice = api.register("alice")
        content = "It was a dark and stormy night. " * 5

        response = client.post(
            "/api/stories",
            json={"title": "  Storm  ", "content": content, "genre": "thriller"},
            headers=api.bearer(alice["token"]),
        )

        assert response.status_code == 201
        story = response.json()["data"]
        assert story["title"] == "Storm"
        assert story["genre"] == "thriller"
        assert story["author"] == {"id": alice["id"], "username": "alice"}
        assert story["wordCount"] == len(content.split())
        assert story["status"] == "published"
        assert story["isAIGenerated"] is False
        assert story["likes"] == []
        assert story["likeCount"] == 0
        assert story["comments"] == []
        assert story["image"] is None
        assert story["url"] == f"/stories/{story['id']}"
        assert story["createdAt"] and story["updatedAt"]

    def test_content_length_boundary(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        headers = api.bearer(token)

        short = client.post(
            "/api/stories",
            json={"title": "Short", "content": "a" * 99, "genre": "drama"},
            headers=headers,
        )
        assert short.status_code == 400
        assert short.json()["message"] == "Content must be at least 100 characters long"

        exact = client.post(
            "/api/stories",
            json={"title": "Exact", "content": CONTENT_100, "genre": "drama"},
            headers=headers,
        )
        assert exact.status_code == 201
        assert exact.json()["data"]["wordCount"] == 1

    def test_content_length_counts_code_points(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        response = client.post(
            "/api/stories",
            json={"title": "Emoji", "content": "\U0001F4D6" * 100, "genre": "drama"},
            headers=api.bearer(token),
        )
        assert response.status_code == 201
        assert response.json()["data"]["wordCount"] == 1

    def test_title_length_boundary(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        api.create_story(token, title="t" * 100)

        response = client.post(
            "/api/stories",
            json={"title": "t" * 101, "content": CONTENT_100, "genre": "drama"},
            headers=api.bearer(token),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Title cannot be more than 100 characters"

    def test_required_fields(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        response = client.post(
            "/api/stories",
            json={"title": "No content", "genre": "drama"},
            headers=api.bearer(token),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Title, content, and genre are required"

    def test_unknown_genre(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        response = client.post(
            "/api/stories",
            json={"title": "Cook", "content": CONTENT_100, "genre": "cookbook"},
            headers=api.bearer(token),
        )
        assert response.status_code == 400
        message = response.json()["message"]
        assert message.startswith("cookbook is not a supported genre. Valid genres are: fantasy, romance")

    def test_requires_token(self, client: TestClient) -> None:
        response = client.post(
            "/api/stories",
            json={"title": "Anon", "content": CONTENT_100, "genre": "drama"},
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized, no token"

    def test_multipart_with_image(self, client: TestClient, api, settings: Settings) -> None:
        token = api.register("alice")["token"]
        response = client.post(
            "/api/stories",
            data={"title": "Cover", "content": CONTENT_100, "genre": "fantasy", "isAIGenerated": "true"},
            files={"image": ("cover.png", PNG, "image/png")},
            headers=api.bearer(token),
        )

        assert response.status_code == 201
        story = response.json()["data"]
        assert story["isAIGenerated"] is True
        assert story["image"].startswith("/uploads/novel-ai-hub/story-images/")
        assert (Path(settings.upload_dir) / story["image"].removeprefix("/uploads/")).exists()

    def test_invalid_image_is_rejected_before_saving(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        response = client.post(
            "/api/stories",
            data={"title": "Cover", "content": CONTENT_100, "genre": "fantasy"},
            files={"image": ("cover.bmp", PNG, "image/bmp")},
            headers=api.bearer(token),
        )
        assert response.status_code == 400
        assert client.get("/api/stories").json()["data"]["total"] == 0


class TestListStories:
    def test_pagination_newest_first(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        ids = [api.create_story(token, title=f"Story {i}")["id"] for i in range(15)]

        first = client.get("/api/stories", params={"page": 1, "limit": 10}).json()["data"]
        assert first["total"] == 15
        assert first["pages"] == 2
        assert first["page"] == 1
        assert [s["id"] for s in first["stories"]] == list(reversed(ids))[:10]

        second = client.get("/api/stories", params={"page": 2, "limit": 10}).json()["data"]
        assert len(second["stories"]) == 5
        assert [s["id"] for s in second["stories"]] == list(reversed(ids))[10:]

    def test_invalid_paging_falls_back_to_defaults(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        api.create_story(token)

        data = client.get("/api/stories", params={"page": "abc", "limit": "-5"}).json()["data"]
        assert data["page"] == 1
        assert data["pages"] == 1
        assert len(data["stories"]) == 1

    def test_filter_by_genre(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        api.create_story(token, genre="horror")
        api.create_story(token, genre="romance")

        data = client.get("/api/stories", params={"genre": "horror"}).json()["data"]
        assert [s["genre"] for s in data["stories"]] == ["horror"]

        unknown = client.get("/api/stories", params={"genre": "cookbook"}).json()["data"]
        assert unknown == {"stories": [], "page": 1, "pages": 0, "total": 0}

    def test_search_matches_title_or_content(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        api.create_story(token, title="Dragon Flight", content="x" * 120)
        api.create_story(token, title="Quiet Harbor", content="The DRAGON slept. " * 10)
        api.create_story(token, title="Nothing Here", content="y" * 120)

        data = client.get("/api/stories", params={"search": "dragon"}).json()["data"]
        assert data["total"] == 2
        assert {s["title"] for s in data["stories"]} == {"Dragon Flight", "Quiet Harbor"}

    def test_filter_by_author(self, client: TestClient, api) -> None:
        alice = api.register("alice")
        bob = api.register("bob")
        api.create_story(alice["token"])
        bobs = api.create_story(bob["token"])

        data = client.get("/api/stories", params={"author": bob["id"]}).json()["data"]
        assert [s["id"] for s in data["stories"]] == [bobs["id"]]


class TestGetStory:
    def test_get_by_id(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        story = api.create_story(token)

        response = client.get(f"/api/stories/{story['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["title"] == story["title"]

    def test_missing_story(self, client: TestClient) -> None:
        response = client.get("/api/stories/999")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Story not found"}


class TestUpdateAndDelete:
    def test_author_updates_and_word_count_follows(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        story = api.create_story(token)
        new_content = "word " * 40

        response = client.put(
            f"/api/stories/{story['id']}",
            json={"content": new_content, "status": "draft"},
            headers=api.bearer(token),
        )
        assert response.status_code == 200
        updated = response.json()["data"]
        assert updated["wordCount"] == 40
        assert updated["status"] == "draft"
        # Fields not supplied are unchanged
        assert updated["title"] == story["title"]
        assert updated["genre"] == story["genre"]

    def test_update_validates_fields(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        story = api.create_story(token)

        response = client.put(
            f"/api/stories/{story['id']}",
            json={"content": "too short"},
            headers=api.bearer(token),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Content must be at least 100 characters long"

    def test_author_cannot_be_changed(self, client: TestClient, api) -> None:
        alice = api.register("alice")
        bob = api.register("bob")
        story = api.create_story(alice["token"])

        response = client.put(
            f"/api/stories/{story['id']}",
            json={"author": bob["id"], "title": "Renamed"},
            headers=api.bearer(alice["token"]),
        )
        assert response.status_code == 200
        assert response.json()["data"]["author"]["id"] == alice["id"]

    def test_non_author_cannot_update_or_delete(self, client: TestClient, api) -> None:
        alice = api.register("alice")
        bob = api.register("bob")
        story = api.create_story(alice["token"])
        headers = api.bearer(bob["token"])

        update = client.put(f"/api/stories/{story['id']}", json={"title": "Mine now"}, headers=headers)
        assert update.status_code == 401
        assert update.json()["message"] == "Not authorized to update this story"

        delete = client.delete(f"/api/stories/{story['id']}", headers=headers)
        assert delete.status_code == 401
        assert delete.json()["message"] == "Not authorized to delete this story"

        assert client.get(f"/api/stories/{story['id']}").json()["data"]["title"] == story["title"]

    def test_delete_removes_story_and_image(self, client: TestClient, api, settings: Settings) -> None:
        token = api.register("alice")["token"]
        created = client.post(
            "/api/stories",
            data={"title": "Cover", "content": CONTENT_100, "genre": "fantasy"},
            files={"image": ("cover.png", PNG, "image/png")},
            headers=api.bearer(token),
        ).json()["data"]
        image_path = Path(settings.upload_dir) / created["image"].removeprefix("/uploads/")

        response = client.delete(f"/api/stories/{created['id']}", headers=api.bearer(token))
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Story deleted successfully"}
        assert client.get(f"/api/stories/{created['id']}").status_code == 404
        assert not image_path.exists()

    def test_delete_missing_story(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        response = client.delete("/api/stories/12345", headers=api.bearer(token))
        assert response.status_code == 404


class TestLikes:
    def test_toggle_twice_restores_state(self, client: TestClient, api) -> None:
        alice = api.register("alice")
        bob = api.register("bob")
        story = api.create_story(alice["token"])
        url = f"/api/stories/{story['id']}/like"

        liked = client.post(url, headers=api.bearer(bob["token"]))
        assert liked.status_code == 200
        assert liked.json()["data"] == {"likes": 1, "isLiked": True}
        assert client.get(f"/api/stories/{story['id']}").json()["data"]["likes"] == [bob["id"]]

        unliked = client.post(url, headers=api.bearer(bob["token"]))
        assert unliked.json()["data"] == {"likes": 0, "isLiked": False}
        assert client.get(f"/api/stories/{story['id']}").json()["data"]["likes"] == []

    def test_like_missing_story(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        response = client.post("/api/stories/404/like", headers=api.bearer(token))
        assert response.status_code == 404


class TestComments:
    def test_comments_are_appended_in_order(self, client: TestClient, api) -> None:
        alice = api.register("alice")
        bob = api.register("bob")
        story = api.create_story(alice["token"])
        url = f"/api/stories/{story['id']}/comments"

        client.post(url, json={"content": "First!"}, headers=api.bearer(bob["token"]))
        response = client.post(url, json={"content": "  Thanks  "}, headers=api.bearer(alice["token"]))

        assert response.status_code == 201
        comments = response.json()["data"]
        assert [c["content"] for c in comments] == ["First!", "Thanks"]
        assert comments[0]["user"] == {"id": bob["id"], "username": "bob"}
        assert comments[1]["user"]["username"] == "alice"
        assert comments[0]["createdAt"]

    def test_blank_comment_is_rejected(self, client: TestClient, api) -> None:
        token = api.register("alice")["token"]
        story = api.create_story(token)
        response = client.post(
            f"/api/stories/{story['id']}/comments",
            json={"content": "   "},
            headers=api.bearer(token),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Comment content is required"


class TestUserStories:
    def test_lists_own_stories(self, client: TestClient, api) -> None:
        alice = api.register("alice")
        api.create_story(alice["token"])
        api.create_story(alice["token"], title="Second")

        response = client.get(f"/api/stories/user/{alice['id']}", headers=api.bearer(alice["token"]))
        assert response.status_code == 200
        body = response.json()
        assert "message" not in body
        assert body["data"]["total"] == 2
        assert body["data"]["stories"][0]["title"] == "Second"

    def test_empty_list_message(self, client: TestClient, api) -> None:
        alice = api.register("alice")
        response = client.get(f"/api/stories/user/{alice['id']}", headers=api.bearer(alice["token"]))
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "No stories have been written yet",
            "data": {"stories": [], "page": 1, "pages": 0, "total": 0},
        }

    def test_other_users_stories_are_private(self, client: TestClient, api) -> None:
        alice = api.register("alice")
        bob = api.register("bob")
        response = client.get(f"/api/stories/user/{alice['id']}", headers=api.bearer(bob["token"]))
        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized to view these stories"


class TestPopular:
    def test_ordered_by_like_count(self, client: TestClient, api) -> None:
        alice = api.register("alice")
        bob = api.register("bob")
        quiet = api.create_story(alice["token"], title="Quiet")
        loved = api.create_story(alice["token"], title="Loved")
        liked_once = api.create_story(alice["token"], title="Liked once")

        for user in (alice, bob):
            client.post(f"/api/stories/{loved['id']}/like", headers=api.bearer(user["token"]))
        client.post(f"/api/stories/{liked_once['id']}/like", headers=api.bearer(bob["token"]))

        response = client.get("/api/stories/popular")
        assert response.status_code == 200
        stories = response.json()["data"]
        assert [s["id"] for s in stories] == [loved["id"], liked_once["id"], quiet["id"]]
        assert [s["likeCount"] for s in stories] == [2, 1, 0]


class TestGenerate:
    def test_generate_returns_unsaved_draft(self, client: TestClient, api, provider) -> None:
        token = api.register("alice")["token"]
        response = client.post(
            "/api/stories/generate",
            json={"prompt": "a lighthouse keeper finds a message"},
            headers=api.bearer(token),
        )

        assert response.status_code == 200
        draft = response.json()["data"]
        assert draft["title"] == "The Lighthouse Keeper"
        assert draft["genre"] == "mystery"
        assert draft["isAIGenerated"] is True
        assert len(draft["content"].split()) == 600
        assert len(provider.requests) == 3
        # Nothing persisted
        assert client.get("/api/stories").json()["data"]["total"] == 0

    def test_missing_completion_is_server_error(self, client: TestClient, api, provider) -> None:
        provider.replies["title"] = None
        token = api.register("alice")["token"]
        response = client.post(
            "/api/stories/generate",
            json={"prompt": "anything"},
            headers=api.bearer(token),
        )
        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "Story generation failed: no title returned by provider",
        }

    @pytest.mark.parametrize("body", [{}, {"prompt": "  "}])
    def test_prompt_required(self, client: TestClient, api, body: dict) -> None:
        token = api.register("alice")["token"]
        response = client.post("/api/stories/generate", json=body, headers=api.bearer(token))
        assert response.status_code == 400
        assert response.json()["message"] == "Prompt is required"

    def test_requires_token(self, client: TestClient) -> None:
        response = client.post("/api/stories/generate", json={"prompt": "x"})
        assert response.status_code == 401
