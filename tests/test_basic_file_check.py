# tests/test_basic_file_check.py
import pytest

from bts.domain.models import MediaBlob
from bts.verification import is_placeholder, is_ready_for_full_verification
from bts.verification.steps.basic_file_check import run_basic_file_check
from fakes import photo_blob, video_blob


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "photo",
    [None, MediaBlob.empty(), photo_blob(50), photo_blob(5000), photo_blob(5000, "text/plain")],
)
async def test_small_video_fails_regardless_of_photo(photo):
    result = await run_basic_file_check(video_blob(1023), photo)

    assert result.passed is False
    assert result.confidence == 0
    assert result.video_valid is False
    assert "too small" in result.details


@pytest.mark.asyncio
async def test_non_video_primary_fails():
    result = await run_basic_file_check(video_blob(4096, "image/png"), photo_blob())

    assert result.passed is False
    assert result.details == "Invalid video format - not a video file"


@pytest.mark.asyncio
async def test_oversized_video_fails():
    result = await run_basic_file_check(video_blob(100 * 1024 * 1024 + 1), photo_blob())

    assert result.passed is False
    assert "too large" in result.details


@pytest.mark.asyncio
async def test_zero_byte_photo_is_placeholder_and_passes():
    progress: list[int] = []
    result = await run_basic_file_check(
        video_blob(),
        MediaBlob(content=b"", content_type="image/jpeg"),
        lambda p, _msg: progress.append(p),
    )

    assert result.passed is True
    assert result.is_placeholder_photo is True
    assert result.confidence == 60
    assert progress[-1] == 100
    assert progress == sorted(progress)


@pytest.mark.asyncio
async def test_missing_photo_is_treated_as_placeholder():
    result = await run_basic_file_check(video_blob(), None)

    assert result.passed is True
    assert result.is_placeholder_photo is True
    assert result.photo_valid is True
    assert result.details == "Video validated successfully, awaiting selfie capture"


@pytest.mark.asyncio
@pytest.mark.parametrize("size", [100, 1023, 1024, 10 * 1024 * 1024])
async def test_real_photo_between_threshold_and_max_passes(size):
    result = await run_basic_file_check(video_blob(), photo_blob(size))

    assert result.passed is True
    assert result.is_placeholder_photo is False
    assert result.photo_valid is True
    assert result.confidence == 100


@pytest.mark.asyncio
async def test_real_photo_must_be_an_image():
    result = await run_basic_file_check(video_blob(), photo_blob(4096, "application/pdf"))

    assert result.passed is False
    assert result.video_valid is True
    assert result.photo_valid is False
    assert result.details == "Invalid image format - not an image file"


@pytest.mark.asyncio
async def test_oversized_photo_fails():
    result = await run_basic_file_check(video_blob(), photo_blob(10 * 1024 * 1024 + 1))

    assert result.passed is False
    assert "Photo file too large" in result.details


def test_placeholder_rules():
    assert is_placeholder(None)
    assert is_placeholder(MediaBlob.empty())
    assert is_placeholder(MediaBlob(content=b"x" * 500, content_type=""))
    assert is_placeholder(photo_blob(99))
    assert not is_placeholder(photo_blob(100))


def test_ready_for_full_verification():
    assert is_ready_for_full_verification(video_blob(), photo_blob(101))
    assert not is_ready_for_full_verification(video_blob(), photo_blob(100))
    assert not is_ready_for_full_verification(video_blob(), None)
    assert not is_ready_for_full_verification(MediaBlob.empty(), photo_blob())
