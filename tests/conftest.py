"""Shared fixtures: an app wired to a temporary SQLite file, local-disk
uploads, a scripted generation provider and a recording reset webhook."""

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from novelhub.api.main import create_app
from novelhub.core.config import Settings
from novelhub.services.generation import (
    GENRE_SYSTEM_PROMPT,
    STORY_SYSTEM_PROMPT,
    TITLE_SYSTEM_PROMPT,
    GenerationProxy,
)
from novelhub.services.media import LocalAssetHost, MediaPipeline
from novelhub.services.notifications import ResetTokenDelivery

STORY_CONTENT = (
    "The lighthouse had been dark for eleven years when Mara climbed its "
    "spiral stairs with a lantern and a borrowed key, determined to learn "
    "why the light had failed."
)
GENERATED_STORY = " ".join(["waves"] * 600)
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 256
RESET_WEBHOOK_URL = "http://mail.test/password-reset"


class FakeProvider:
    """Scripted OpenAI-compatible chat completion endpoint.

    Replies are keyed by step; a step mapped to ``None`` answers with an
    empty ``choices`` list.
    """

    def __init__(self) -> None:
        self.replies: dict[str, str | None] = {
            "story": GENERATED_STORY,
            "title": '"The Lighthouse Keeper"',
            "genre": "Mystery",
        }
        self.requests: list[dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        system_prompt = body["messages"][0]["content"]
        step = {
            STORY_SYSTEM_PROMPT: "story",
            TITLE_SYSTEM_PROMPT: "title",
            GENRE_SYSTEM_PROMPT: "genre",
        }[system_prompt]

        reply = self.replies[step]
        if reply is None:
            return httpx.Response(200, json={"choices": []})
        return httpx.Response(
            200,
            json={"choices": [{"message": {"role": "assistant", "content": reply}}]},
        )


class ResetInbox:
    """Records tokens posted to the reset webhook."""

    def __init__(self) -> None:
        self.messages: list[dict[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.messages.append(json.loads(request.content))
        return httpx.Response(202)

    def token_for(self, email: str) -> str:
        return next(m["token"] for m in reversed(self.messages) if m["email"] == email)


class Api:
    """Request helpers for the common setup steps."""

    def __init__(self, client: TestClient) -> None:
        self.client = client

    @staticmethod
    def bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def register(
        self,
        username: str = "alice",
        email: str | None = None,
        password: str = "secret123",
    ) -> dict[str, Any]:
        response = self.client.post(
            "/api/users/register",
            json={
                "username": username,
                "email": email or f"{username}@example.com",
                "password": password,
            },
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    def create_story(self, token: str, **fields: Any) -> dict[str, Any]:
        payload = {"title": "The Dark Lighthouse", "content": STORY_CONTENT, "genre": "mystery"}
        payload.update(fields)
        response = self.client.post("/api/stories", json=payload, headers=self.bearer(token))
        assert response.status_code == 201, response.text
        return response.json()["data"]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        environment="development",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        database_connect_retries=1,
        upload_dir=str(tmp_path / "uploads"),
        jwt_secret="test-secret",
        generation_api_key="test-key",
        password_reset_webhook_url=RESET_WEBHOOK_URL,
        rate_limit_requests=1000,
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def reset_inbox() -> ResetInbox:
    return ResetInbox()


@pytest.fixture
def app(settings: Settings, provider: FakeProvider, reset_inbox: ResetInbox):
    generator = GenerationProxy(
        api_key=settings.generation_api_key,
        api_url=settings.generation_api_url,
        model=settings.generation_model,
        client=httpx.AsyncClient(transport=httpx.MockTransport(provider.handler)),
    )
    reset_delivery = ResetTokenDelivery(
        RESET_WEBHOOK_URL,
        client=httpx.AsyncClient(transport=httpx.MockTransport(reset_inbox.handler)),
    )
    return create_app(
        settings,
        media=MediaPipeline(LocalAssetHost(settings.upload_dir)),
        generator=generator,
        reset_delivery=reset_delivery,
    )


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def api(client: TestClient) -> Api:
    return Api(client)
