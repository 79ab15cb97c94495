"""
HTTP collaborators (httpx): reward generation and challenge judgment.
"""

from .base import upstream_error_message
from .generation import RewardGenerationClient, RewardResult
from .judgment import HttpChallengeJudge, judgment_from_response, parse_legacy_explanation

__all__ = [
    "upstream_error_message",
    "RewardGenerationClient",
    "RewardResult",
    "HttpChallengeJudge",
    "judgment_from_response",
    "parse_legacy_explanation",
]
