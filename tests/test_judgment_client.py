# tests/test_judgment_client.py
import httpx
import pytest

from bts.clients import HttpChallengeJudge, judgment_from_response, parse_legacy_explanation
from bts.domain.errors import UpstreamServiceError, UpstreamTimeoutError
from fakes import video_blob

URL = "http://judge.test/api/verify"


def _judge(handler) -> HttpChallengeJudge:
    return HttpChallengeJudge(URL, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_parse_legacy_explanation():
    parsed = parse_legacy_explanation(
        "Verification failed: Nice moves but too short (Creativity: 6/10, Authenticity: 9/10, Effort: 4/10) (Score: 55/100)"
    )

    assert parsed.explanation == "Nice moves but too short"
    assert (parsed.creativity, parsed.authenticity, parsed.effort) == (6, 9, 4)
    assert parsed.score == 55


def test_parse_legacy_explanation_without_ratings():
    parsed = parse_legacy_explanation("Looks great")

    assert parsed.explanation == "Looks great"
    assert parsed.creativity is None
    assert parsed.score is None


def test_structured_fields_win_over_embedded_text():
    judgment = judgment_from_response(
        {
            "passed": True,
            "confidence": 0.85,
            "explanation": "Great run (Creativity: 2/10, Authenticity: 2/10, Effort: 2/10)",
            "creativity": 8,
            "authenticity": 9,
            "effort": 10,
            "score": 88,
        }
    )

    assert judgment.passed is True
    assert judgment.confidence == 85
    assert (judgment.creativity, judgment.authenticity, judgment.effort) == (8, 9, 10)
    assert judgment.score == 88
    assert judgment.explanation == "Great run"
    assert judgment.raw_explanation.endswith("Effort: 2/10)")


def test_confidence_falls_back_to_score():
    judgment = judgment_from_response(
        {"success": False, "explanation": "Not the challenge (Score: 30/100)"}
    )

    assert judgment.passed is False
    assert judgment.confidence == 30
    assert judgment.details == "Not the challenge"


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"passed": "false", "success": True}, False),
        ({"passed": "TRUE"}, True),
        ({"passed": "yes", "success": "false"}, False),
        ({"success": 1}, False),
    ],
)
def test_passed_only_accepts_real_flags(body, expected):
    assert judgment_from_response({**body, "explanation": "Done"}).passed is expected


@pytest.mark.asyncio
async def test_judge_posts_multipart_video_and_description():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.content
        return httpx.Response(
            200,
            json={
                "passed": True,
                "confidence": 90,
                "explanation": "Clear push-ups (Creativity: 7/10, Authenticity: 8/10, Effort: 9/10) (Score: 90/100)",
            },
        )

    judgment = await _judge(handler).judge(video_blob(2048), "Do push-ups")

    assert seen["content_type"].startswith("multipart/form-data")
    assert b'name="challengeDescription"' in seen["body"]
    assert b"Do push-ups" in seen["body"]
    assert b'name="video"' in seen["body"]
    assert judgment.passed is True
    assert judgment.confidence == 90
    assert (judgment.creativity, judgment.authenticity, judgment.effort, judgment.score) == (7, 8, 9, 90)


@pytest.mark.asyncio
async def test_judge_gateway_timeout():
    with pytest.raises(UpstreamTimeoutError):
        await _judge(lambda request: httpx.Response(504)).judge(video_blob(), "x")


@pytest.mark.asyncio
async def test_judge_error_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": "video unreadable"})

    with pytest.raises(UpstreamServiceError) as exc:
        await _judge(handler).judge(video_blob(), "x")
    assert exc.value.message == "Challenge judgment failed: video unreadable"
