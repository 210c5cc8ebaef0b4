"""AI story generation proxy.

Forwards a free-text prompt to an OpenAI-compatible chat completion API in
three sequential calls: the narrative, a title for it, and a genre
classification. Any failed step aborts the whole operation.
"""

import logging
import re
from typing import Any

import httpx

from novelhub.api.exceptions import ConfigError, UpstreamError, ValidationError
from novelhub.core.config import Settings
from novelhub.models.story import GENRES

logger = logging.getLogger(__name__)

STORY_SYSTEM_PROMPT = (
    "You are a creative fiction writer. Write an engaging, original story of "
    "500 to 1000 words based on the user's prompt. Use vivid descriptions, "
    "natural dialogue and a clear beginning, middle and end. Respond with the "
    "story text only, without a title."
)

TITLE_SYSTEM_PROMPT = (
    "You write titles for stories. Reply with a single title of at most 5 "
    "words and nothing else."
)

GENRE_SYSTEM_PROMPT = (
    "You classify stories into exactly one genre. Reply with one genre from "
    "this list and nothing else: " + ", ".join(GENRES) + "."
)

MAX_TITLE_WORDS = 5
MAX_TITLE_LENGTH = 100


def extract_completion(payload: Any, step: str) -> str:
    """Pull ``choices[0].message.content`` out of a provider response.

    Raises:
        UpstreamError: If the completion field is missing or empty.
    """
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None
    if not isinstance(content, str) or not content.strip():
        raise UpstreamError(f"Story generation failed: no {step} returned by provider")
    return content.strip()


def normalize_title(raw: str) -> str:
    """Strip quotes and labels and keep at most five words."""
    title = raw.splitlines()[0].strip()
    title = re.sub(r"^title\s*:\s*", "", title, flags=re.IGNORECASE)
    title = title.strip(" \"'*#")
    words = title.split()[:MAX_TITLE_WORDS]
    return " ".join(words)[:MAX_TITLE_LENGTH]


def match_genre(raw: str) -> str | None:
    """Map a classification reply onto a supported genre."""
    candidate = re.sub(r"[^a-z\s-]", "", raw.lower()).strip()
    candidate = re.sub(r"\s+", "-", candidate)
    if candidate in GENRES:
        return candidate
    # Longest names first: multi-word genres are tried before single words
    for genre in sorted(GENRES, key=len, reverse=True):
        if genre in candidate or genre.replace("-", " ") in raw.lower():
            return genre
    return None


class GenerationProxy:
    """Client for the story generation provider."""

    def __init__(
        self,
        api_key: str,
        api_url: str,
        model: str,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationProxy":
        return cls(
            api_key=settings.generation_api_key,
            api_url=settings.generation_api_url,
            model=settings.generation_model,
            timeout=settings.generation_timeout_seconds,
        )

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        step: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            response = await self._client.post(self.api_url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Generation provider error during %s: %s", step, e.response.status_code)
            raise UpstreamError(f"Story generation failed: provider error during {step}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Generation provider request failed during %s: %s", step, e)
            raise UpstreamError(f"Story generation failed: provider error during {step}") from e

        return extract_completion(data, step)

    async def generate(self, prompt: str | None) -> dict[str, Any]:
        """Generate a story, title and genre from a prompt.

        Nothing is persisted; the caller saves the result with a separate
        create-story request.

        Raises:
            ValidationError: If the prompt is empty.
            ConfigError: If the provider API key is unset.
            UpstreamError: If any of the three provider calls fails.
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt is required")
        if not self.api_key:
            raise ConfigError("Story generation is not configured")

        content = await self._complete(
            STORY_SYSTEM_PROMPT,
            prompt.strip(),
            step="story",
            max_tokens=2000,
            temperature=0.8,
        )
        raw_title = await self._complete(
            TITLE_SYSTEM_PROMPT,
            f"Write a title for this story:\n\n{content}",
            step="title",
            max_tokens=20,
            temperature=0.7,
        )
        raw_genre = await self._complete(
            GENRE_SYSTEM_PROMPT,
            f"Classify this story:\n\n{content}",
            step="genre",
            max_tokens=10,
            temperature=0.0,
        )

        title = normalize_title(raw_title)
        if not title:
            raise UpstreamError("Story generation failed: no title returned by provider")
        genre = match_genre(raw_genre)
        if genre is None:
            raise UpstreamError(f"Story generation failed: unrecognized genre '{raw_genre}'")

        logger.info("Generated story '%s' (%s, %d words)", title, genre, len(content.split()))
        return {
            "title": title,
            "content": content,
            "genre": genre,
            "isAIGenerated": True,
        }

    async def aclose(self) -> None:
        await self._client.aclose()
