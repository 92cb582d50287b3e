"""Unit and property tests for the data models."""

from datetime import datetime, timedelta

import pytest
from hypothesis import given, strategies as st
from hypothesis.strategies import composite

from reel_pipeline.errors import ValidationError
from reel_pipeline.models import (
    AudioResult,
    CelebrityProfile,
    GenerationRequest,
    Job,
    JobStatusEnum,
    QualityTier,
    QueueMetrics,
    ReelArtifact,
    ScriptResult,
    StageName,
    VideoResult,
    VideoStyle,
    VoiceRegion,
    VoiceType,
)


@composite
def generation_request_strategy(draw):
    """Generate valid GenerationRequest instances."""
    return GenerationRequest(
        celebrity_id=draw(st.text(min_size=1, max_size=20, alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd")))),
        duration=draw(st.integers(min_value=15, max_value=120)),
        voice_type=draw(st.sampled_from(list(VoiceType))),
        voice_region=draw(st.sampled_from(list(VoiceRegion))),
        style=draw(st.sampled_from(list(VideoStyle))),
        quality=draw(st.sampled_from(list(QualityTier))),
        include_subtitles=draw(st.booleans()),
        custom_prompt=draw(st.one_of(st.none(), st.text(min_size=1, max_size=50))),
        priority=draw(st.integers(min_value=1, max_value=5)),
    )


class TestGenerationRequest:
    """Test request validation."""

    @given(generation_request_strategy())
    def test_valid_requests_pass(self, generation_request):
        generation_request.validate()
        assert GenerationRequest.from_dict(generation_request.to_dict()) == generation_request

    @given(st.integers().filter(lambda d: d < 15 or d > 120))
    def test_duration_out_of_range(self, duration):
        with pytest.raises(ValidationError):
            GenerationRequest(celebrity_id="c1", duration=duration).validate()

    @given(st.integers().filter(lambda p: p < 1 or p > 5))
    def test_priority_out_of_range(self, priority):
        with pytest.raises(ValidationError):
            GenerationRequest(celebrity_id="c1", duration=30, priority=priority).validate()

    @pytest.mark.parametrize("duration", [30.5, "30", True])
    def test_duration_must_be_int(self, duration):
        with pytest.raises(ValidationError):
            GenerationRequest(celebrity_id="c1", duration=duration).validate()

    def test_empty_celebrity(self):
        with pytest.raises(ValidationError):
            GenerationRequest(celebrity_id="", duration=30).validate()

    def test_from_dict_defaults(self):
        request = GenerationRequest.from_dict({"celebrity_id": "c1", "duration": 45})
        assert request.voice_type == VoiceType.MALE_NARRATOR
        assert request.quality == QualityTier.HD_720
        assert request.priority == 3

    def test_from_dict_unknown_enum(self):
        with pytest.raises(ValidationError):
            GenerationRequest.from_dict({"celebrity_id": "c1", "duration": 45, "style": "noir"})

    def test_from_dict_missing_field(self):
        with pytest.raises(ValidationError, match="duration"):
            GenerationRequest.from_dict({"celebrity_id": "c1"})

    def test_frozen(self):
        request = GenerationRequest(celebrity_id="c1", duration=30)
        with pytest.raises(AttributeError):
            request.duration = 60


class TestEnums:
    """Test enum helpers."""

    def test_quality_resolution(self):
        assert QualityTier.HD_720.resolution == (1280, 720)
        assert QualityTier.HD_1080.resolution == (1920, 1080)

    def test_terminal_statuses(self):
        assert {s for s in JobStatusEnum if s.is_terminal} == {
            JobStatusEnum.COMPLETED, JobStatusEnum.FAILED, JobStatusEnum.CANCELLED,
        }


class TestStageResults:
    """Test the tagged stage results."""

    def test_each_result_tagged(self):
        assert ScriptResult(text="a", word_count=1, tokens_used=1).stage == StageName.SCRIPT
        assert AudioResult(buffer=b"a", duration_sec=1.0, voice_id="Matthew").stage == StageName.SPEECH
        video = VideoResult(buffer=b"abc", duration_sec=1.0, resolution="1280x720", file_size_bytes=3)
        assert video.stage == StageName.COMPOSITION
        assert "bytes=3" in repr(video)


class TestJob:
    """Test Job invariants and serialization."""

    def test_attempts_bounds(self):
        request = GenerationRequest(celebrity_id="c1", duration=30)
        with pytest.raises(ValueError):
            Job(id="j", request=request, attempts=4, max_attempts=3)
        with pytest.raises(ValueError):
            Job(id="j", request=request, max_attempts=0)

    def test_timings(self):
        created = datetime(2024, 1, 1, 12, 0, 0)
        job = Job(
            id="j",
            request=GenerationRequest(celebrity_id="c1", duration=30),
            created_at=created,
            started_at=created + timedelta(seconds=5),
            completed_at=created + timedelta(seconds=65),
        )
        assert job.wait_time == 5.0
        assert job.processing_time == 60.0

    def test_to_dict_round_trip(self):
        job = Job(
            id="j",
            request=GenerationRequest(celebrity_id="c1", duration=30, priority=4),
            status=JobStatusEnum.COMPLETED,
            attempts=1,
            result=ReelArtifact("videos/x.mp4", "https://cdn/x.mp4", 10, 30.0, "1280x720", "T"),
            started_at=datetime(2024, 1, 1),
            completed_at=datetime(2024, 1, 1, 0, 1),
        )

        data = job.to_dict()

        assert data["status"] == "completed"
        assert data["priority"] == 4
        assert data["progress"] == {"stage": None, "percent": None}
        assert data["result"]["duration_sec"] == 30.0
        restored = Job.from_dict(data)
        assert restored.to_dict() == data


class TestCelebrityProfile:
    """Test celebrity profile construction."""

    def test_requires_name(self):
        with pytest.raises(ValueError):
            CelebrityProfile(id="c1", name="", sport="Tennis")

    def test_from_dict_ignores_unknown_keys(self):
        profile = CelebrityProfile.from_dict({"id": "c1", "name": "A", "sport": "Golf", "imageUrl": "x"})
        assert profile.sport == "Golf"


class TestQueueMetrics:
    def test_success_rate_without_history(self):
        assert QueueMetrics().success_rate == 0.0
