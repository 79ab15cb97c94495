"""Client for the reward generation service."""
from __future__ import annotations

import time
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from bts.domain.errors import UpstreamServiceError, UpstreamTimeoutError
from bts.domain.models import ChallengeInfo
from bts.logging import get_logger

from .base import UpstreamClient, is_gateway_timeout, upstream_error_message

_LOG = get_logger(__name__)

BUSY_MESSAGE = "Reward generation timed out - server is busy. Please try again."


class RewardResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    collection_id: str
    template_type: str
    template_name: str
    image_url: str
    completion_id: str
    rarity: str
    token_bonus: int
    item_type: str


def completion_id(user_id: str) -> str:
    return f"bg_{int(time.time() * 1000)}_{user_id}"


class RewardGenerationClient(UpstreamClient):
    """
    POSTs a generation request and maps the response to a RewardResult.

    Errors:
    - 504 / "Gateway Timeout" / client timeout -> UpstreamTimeoutError
    - any other failure -> UpstreamServiceError
    """

    model = "velogen"
    width = 512
    height = 512
    steps = 2
    enhance = "2x"

    def build_payload(self, user_id: str, challenge: ChallengeInfo) -> dict[str, Any]:
        return {
            "userID": user_id,
            "completionId": completion_id(user_id),
            "challengeTitle": challenge.title,
            "challengeDescription": challenge.description,
            "model": self.model,
            "width": self.width,
            "height": self.height,
            "steps": self.steps,
            "enhance": self.enhance,
        }

    async def generate(self, user_id: str, challenge: ChallengeInfo) -> RewardResult:
        payload = self.build_payload(user_id, challenge)
        _LOG.info("Requesting reward generation for user %s", user_id)

        try:
            async with self._session() as client:
                response = await client.post(self.url, json=payload, timeout=self.timeout_s)
        except httpx.TimeoutException as e:
            _LOG.warning("Reward generation request timed out after %ss", self.timeout_s)
            raise UpstreamTimeoutError(BUSY_MESSAGE, details={"user_id": user_id}) from e
        except httpx.HTTPError as e:
            raise UpstreamServiceError(f"Reward generation failed: {e}", details={"user_id": user_id}) from e

        if response.is_error:
            message = upstream_error_message(response)
            _LOG.warning("Reward generation returned %d: %s", response.status_code, message)
            if is_gateway_timeout(response.status_code, message):
                raise UpstreamTimeoutError(BUSY_MESSAGE, details={"status": response.status_code})
            raise UpstreamServiceError(
                f"Reward generation failed: {message}",
                details={"status": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamServiceError("Reward generation failed: response is not JSON") from e

        return self.parse_response(body, user_id=user_id, completion=payload["completionId"])

    @staticmethod
    def parse_response(body: Any, *, user_id: str, completion: str) -> RewardResult:
        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            raise UpstreamServiceError(
                f"Reward generation failed: {error or 'no success flag'}",
                details={"user_id": user_id},
            )

        image_url = (body.get("generation") or {}).get("imageUrl")
        if not image_url:
            raise UpstreamServiceError("Reward generation failed: no image URL returned", details={"user_id": user_id})

        info = body.get("clothingInfo") or {}
        return RewardResult(
            collection_id=info.get("templateCID") or "generated",
            template_type=info.get("type") or "clothing",
            template_name=info.get("name") or "Generated Item",
            image_url=image_url,
            completion_id=completion,
            rarity=info.get("rarity") or "common",
            token_bonus=int(info.get("tokenBonus") or 0),
            item_type=info.get("type") or "hoodie",
        )
