"""Client-side like commands with optimistic updates."""

import logging
import secrets
import time
from typing import Any

import httpx
from pydantic import BaseModel, Field

from food_marketplace.identifiers import to_base36
from food_marketplace.models.engagement_models import LikeTargetType

logger = logging.getLogger(__name__)


def generate_fingerprint(user_agent: str = "") -> str:
    """Create an anonymous per-session identity such as ``fp_lz7k2q1a_x9f3k2m1_42``.

    Made of a base36 timestamp, random characters and the digits found in the
    user agent, if any.
    """
    timestamp = to_base36(int(time.time() * 1000))
    random_part = secrets.token_hex(4)
    ua_digits = "".join(ch for ch in user_agent if ch.isdigit())[:8]
    fingerprint = f"fp_{timestamp}_{random_part}"
    return f"{fingerprint}_{ua_digits}" if ua_digits else fingerprint


def _like_key(target_type: LikeTargetType, target_id: str) -> str:
    return f"{target_type.value}:{target_id}"


class LikesState(BaseModel):
    """Persisted client state: the fingerprint and the known liked targets."""

    fingerprint: str
    likes: dict[str, bool] = Field(default_factory=dict)


class LikesClient:
    """Likes command client for one browsing session.

    ``toggle_like`` flips the local state immediately, sends the command, then
    either adopts the server's answer or restores the previous state.
    """

    def __init__(self, base_url: str, api_key: str, fingerprint: str | None = None) -> None:
        """Initialize the likes client.

        Args:
            base_url: Base URL of the marketplace API (e.g., "https://api.example.com")
            api_key: Gateway key sent as X-API-Key
            fingerprint: Existing session fingerprint; a new one is generated if absent
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.fingerprint = fingerprint or generate_fingerprint()
        self.likes: dict[str, bool] = {}
        self.likes_counts: dict[str, int] = {}

    def is_liked(self, target_type: LikeTargetType, target_id: str) -> bool:
        return self.likes.get(_like_key(target_type, target_id), False)

    async def toggle_like(self, target_type: LikeTargetType, target_id: str) -> bool:
        """Flip the like on a target.

        Args:
            target_type: PRODUCT or RESTAURANT
            target_id: Target identifier

        Returns:
            The liked state after the command: the server's answer on success,
            the previous state if the request failed
        """
        key = _like_key(target_type, target_id)
        previous = self.likes.get(key, False)
        self.likes[key] = not previous

        url = f"{self.base_url}/likes"
        headers = {"X-API-Key": self.api_key}
        payload = {
            "target_type": target_type.value,
            "target_id": target_id,
            "user_fingerprint": self.fingerprint,
            "liked": not previous,
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                body: Any = response.json()

        except (httpx.HTTPStatusError, httpx.RequestError, ValueError) as e:
            # ValueError covers a 2xx response whose body is not JSON
            logger.error(f"Failed to toggle like on {key}: {e}")
            self.likes[key] = previous
            return previous

        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else body
            logger.warning(f"Like command on {key} rejected: {error}")
            self.likes[key] = previous
            return previous

        data = body.get("data")
        if not isinstance(data, dict):
            logger.error(f"Malformed like response for {key}: {body}")
            self.likes[key] = previous
            return previous

        liked = bool(data.get("liked", not previous))
        self.likes[key] = liked
        if isinstance(data.get("likes_count"), int):
            self.likes_counts[key] = data["likes_count"]
        return liked

    def to_state(self) -> LikesState:
        """Serialize the fingerprint and liked map for the browser session."""
        return LikesState(fingerprint=self.fingerprint, likes=dict(self.likes))

    @classmethod
    def from_state(cls, state: LikesState, base_url: str, api_key: str) -> "LikesClient":
        """Restore a client from a saved session state."""
        client = cls(base_url=base_url, api_key=api_key, fingerprint=state.fingerprint)
        client.likes = dict(state.likes)
        return client
