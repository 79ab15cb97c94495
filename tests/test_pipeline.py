# tests/test_pipeline.py
import pytest

from bts.domain.errors import ModelLoadError, UpstreamTimeoutError
from bts.domain.models import MediaBlob
from bts.domain.states import StepStatus
from bts.verification import (
    STEP_ACTIVITY,
    STEP_BASIC,
    STEP_PRESENCE,
    ActivityJudgment,
    PresenceCheckResult,
    VerificationPipeline,
    WeightedProgress,
)
from fakes import FakeDetector, FakeJudge, photo_blob, video_blob


@pytest.mark.asyncio
async def test_full_pass_with_real_photo():
    detector, judge = FakeDetector(), FakeJudge()
    pipeline = VerificationPipeline(detector, judge)

    result = await pipeline.run_full_verification(video_blob(), photo_blob(), "Do ten push-ups")

    assert result.passed is True
    assert result.is_partial is False
    assert result.pending_steps == []
    assert [s.status for s in result.steps] == [StepStatus.COMPLETED] * 3
    # 1.0, 0.9, 0.8
    assert result.overall_confidence == pytest.approx(0.9)
    assert detector.calls == 1
    assert judge.calls == ["Do ten push-ups"]

    activity = result.step(STEP_ACTIVITY).result
    assert (activity.creativity, activity.authenticity, activity.effort) == (7, 8, 9)


@pytest.mark.asyncio
async def test_placeholder_photo_gives_partial_pass():
    detector = FakeDetector()
    pipeline = VerificationPipeline(detector, FakeJudge())

    result = await pipeline.run_full_verification(video_blob(), MediaBlob.empty(), "Dance")

    assert result.passed is True
    assert result.is_partial is True
    assert result.pending_steps == [STEP_PRESENCE]
    assert detector.calls == 0
    assert result.step(STEP_BASIC).result.is_placeholder_photo is True
    assert result.step(STEP_PRESENCE).result.is_placeholder is True
    # 0.6, 0.5, 0.8
    assert result.overall_confidence == pytest.approx((0.6 + 0.5 + 0.8) / 3)


@pytest.mark.asyncio
async def test_stage_one_failure_has_zero_confidence_and_skips_rest():
    detector, judge = FakeDetector(), FakeJudge()
    pipeline = VerificationPipeline(detector, judge)

    result = await pipeline.run_full_verification(video_blob(10), photo_blob(), "Dance")

    assert result.passed is False
    assert result.overall_confidence == 0
    assert result.step(STEP_BASIC).status == StepStatus.FAILED
    assert result.step(STEP_BASIC).confidence is None
    assert result.step(STEP_PRESENCE).status == StepStatus.PENDING
    assert result.step(STEP_ACTIVITY).status == StepStatus.PENDING
    assert result.explanation == "Video file too small (less than 1KB)"
    assert detector.calls == 0
    assert judge.calls == []


@pytest.mark.asyncio
async def test_presence_failure_stops_before_judgment():
    detector = FakeDetector(PresenceCheckResult(passed=False, confidence=0, details="No face detected in selfie"))
    judge = FakeJudge()
    pipeline = VerificationPipeline(detector, judge)

    result = await pipeline.run_full_verification(video_blob(), photo_blob(), "Dance")

    assert result.passed is False
    assert result.explanation == "No face detected in selfie"
    assert judge.calls == []
    # only the basic check completed
    assert result.overall_confidence == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_judgment_rejection_surfaces_explanation():
    judge = FakeJudge(
        ActivityJudgment(
            passed=False,
            confidence=20,
            details="No push-ups visible",
            explanation="No push-ups visible",
            score=20,
        )
    )
    pipeline = VerificationPipeline(FakeDetector(), judge)

    result = await pipeline.run_full_verification(video_blob(), photo_blob(), "Do push-ups")

    assert result.passed is False
    assert result.explanation == "No push-ups visible"
    assert result.step(STEP_ACTIVITY).status == StepStatus.FAILED
    assert result.overall_confidence == pytest.approx((1.0 + 0.9) / 2)


@pytest.mark.asyncio
async def test_stage_exception_is_recorded_on_that_stage():
    detector = FakeDetector(exc=ModelLoadError("Could not load face detection model"))
    pipeline = VerificationPipeline(detector, FakeJudge())

    result = await pipeline.run_full_verification(video_blob(), photo_blob(), "Dance")

    step = result.step(STEP_PRESENCE)
    assert result.passed is False
    assert step.status == StepStatus.FAILED
    assert step.progress == 100
    assert "Could not load face detection model" in step.message
    assert result.explanation == step.message


@pytest.mark.asyncio
async def test_judge_timeout_message_reaches_result():
    judge = FakeJudge(exc=UpstreamTimeoutError("Challenge judgment timed out - server is busy. Please try again."))
    pipeline = VerificationPipeline(FakeDetector(), judge)

    result = await pipeline.run_full_verification(video_blob(), photo_blob(), "Dance")

    assert result.passed is False
    assert "server is busy" in result.explanation


@pytest.mark.asyncio
async def test_progress_snapshots_and_weighted_progress():
    snapshots = []
    pipeline = VerificationPipeline(FakeDetector(), FakeJudge(), on_progress=snapshots.append)

    await pipeline.run_full_verification(video_blob(), photo_blob(), "Dance")

    weighted = WeightedProgress()
    values = [weighted.update(steps) for steps in snapshots]
    assert values == sorted(values)
    assert values[-1] == 100
    assert all(len(s) == 3 for s in snapshots)
    # snapshots are not mutated by later updates
    assert snapshots[0][0].status == StepStatus.RUNNING
    assert snapshots[0][1].status == StepStatus.PENDING


@pytest.mark.asyncio
async def test_pipeline_can_be_reused():
    pipeline = VerificationPipeline(FakeDetector(), FakeJudge())

    first = await pipeline.run_full_verification(video_blob(10), photo_blob(), "Dance")
    second = await pipeline.run_full_verification(video_blob(), photo_blob(), "Dance")

    assert first.passed is False
    assert second.passed is True
    assert second.step(STEP_BASIC).status == StepStatus.COMPLETED


def test_weighted_progress_never_decreases():
    from bts.verification.pipeline import initial_steps

    steps = initial_steps()
    weighted = WeightedProgress()

    basic_done = [steps[0].model_copy(update={"status": StepStatus.COMPLETED, "progress": 100})] + steps[1:]
    assert weighted.update(basic_done) == 20

    presence_half = [basic_done[0], steps[1].model_copy(update={"status": StepStatus.RUNNING, "progress": 50}), steps[2]]
    assert weighted.update(presence_half) == 40

    assert weighted.update(steps) == 40
