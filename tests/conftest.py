"""
Pytest configuration and fixtures for the celebrity reel pipeline tests.
"""

import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Generator, List, Optional

import pytest

from reel_pipeline.config import Settings
from reel_pipeline.errors import ProviderError
from reel_pipeline.models import (
    CelebrityProfile,
    GenerationRequest,
    QualityTier,
    VideoStyle,
    VoiceRegion,
    VoiceType,
)
from reel_pipeline.services.record_store import InMemoryCelebrityDirectory, InMemoryRecordStore
from reel_pipeline.services.script_generation import Completion
from reel_pipeline.services.speech_synthesis import SynthesizedAudio


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with temporary directories and no real waiting."""
    settings = Settings(
        data_dir=temp_dir / "data",
        cache_dir=temp_dir / "cache",
        storage_dir=temp_dir / "storage",
        logs_dir=temp_dir / "logs",
        max_attempts=3,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        provider_max_retries=3,
        provider_backoff_base=0.0,
        provider_backoff_max=0.0,
        public_base_url="https://cdn.example.com",
        log_level="DEBUG",
    )

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.cache_dir.mkdir(parents=True, exist_ok=True)
    settings.logs_dir.mkdir(parents=True, exist_ok=True)

    return settings


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Drop file handlers installed by the test, back to console-only logging."""
    yield
    from reel_pipeline.logging_config import setup_logging

    setup_logging(log_to_files=False)


@pytest.fixture
def sample_celebrity() -> CelebrityProfile:
    """Create a sample celebrity profile for testing."""
    return CelebrityProfile(
        id="c1",
        name="Serena Williams",
        sport="Tennis",
        biography="American tennis player, winner of 23 Grand Slam singles titles.",
        achievements=["23 Grand Slam singles titles", "4 Olympic gold medals"],
        position="Singles",
        nationality="American",
    )


@pytest.fixture
def celebrity_directory(sample_celebrity: CelebrityProfile) -> InMemoryCelebrityDirectory:
    return InMemoryCelebrityDirectory([sample_celebrity])


@pytest.fixture
def sample_request() -> GenerationRequest:
    """Create a sample 30 second generation request."""
    return GenerationRequest(
        celebrity_id="c1",
        duration=30,
        voice_type=VoiceType.FEMALE_NARRATOR,
        voice_region=VoiceRegion.US,
        style=VideoStyle.DOCUMENTARY,
        quality=QualityTier.HD_720,
        priority=1,
    )


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


def narration(words: int) -> str:
    """Narration text with exactly ``words`` words."""
    return " ".join(f"word{i}" for i in range(words))


class FakeScriptProvider:
    """Script provider returning queued responses (text or exceptions)."""

    def __init__(self, responses: Optional[List] = None, words: int = 75):
        self.responses = list(responses or [])
        self.words = words
        self.calls: List[dict] = []

    def complete(self, system_prompt, user_prompt, max_tokens, temperature):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return Completion(text=response, tokens_used=123)
        return Completion(text=narration(self.words), tokens_used=123)


class FakeSpeechProvider:
    """Speech provider returning fixed audio with a word-count based duration."""

    def __init__(self, seconds_per_word: Optional[float] = 0.4, failures: Optional[List[Exception]] = None):
        self.seconds_per_word = seconds_per_word
        self.failures = list(failures or [])
        self.calls: List[dict] = []

    def synthesize(self, text, voice_id, output_format, sample_rate):
        self.calls.append({"text": text, "voice_id": voice_id, "output_format": output_format})
        if self.failures:
            raise self.failures.pop(0)
        duration = None
        if self.seconds_per_word is not None:
            duration = len(text.split()) * self.seconds_per_word
        return SynthesizedAudio(audio=b"ID3fake-audio", duration_sec=duration)


class FakeEncoder:
    """Stands in for ``subprocess.run``: records commands and writes the output file."""

    def __init__(self, returncode: int = 0, stderr: str = "", output: bytes = b"\x00\x00\x00\x18ftypmp42fake"):
        self.returncode = returncode
        self.stderr = stderr
        self.output = output
        self.commands: List[List[str]] = []
        self.scratch_dirs: List[Path] = []

    def __call__(self, command, capture_output=True, text=True, check=False, timeout=None):
        self.commands.append(list(command))
        output_path = Path(command[-1])
        self.scratch_dirs.append(output_path.parent)
        if self.returncode == 0:
            output_path.write_bytes(self.output)
        return subprocess.CompletedProcess(command, self.returncode, stdout="", stderr=self.stderr)


def transient_error(message: str = "provider unavailable") -> ProviderError:
    return ProviderError(message, provider="fake", transient=True, status_code=503)


def permanent_error(message: str = "unauthorized") -> ProviderError:
    return ProviderError(message, provider="fake", transient=False, status_code=401)


# Property-based testing fixtures
@pytest.fixture
def hypothesis_settings():
    """Configure Hypothesis settings for property tests."""
    from hypothesis import settings

    return settings(max_examples=50, deadline=None)


def build_orchestrator(settings, celebrities, record_store=None, script_provider=None,
                       speech_provider=None, encoder=None):
    """Pipeline orchestrator wired with fake providers, fake encoder and local storage."""
    from reel_pipeline.services.media_composer import MediaComposer
    from reel_pipeline.services.pipeline import PipelineOrchestrator
    from reel_pipeline.services.publisher import LocalObjectStorage, PublishService
    from reel_pipeline.services.script_generation import ScriptGenerationService
    from reel_pipeline.services.speech_synthesis import SpeechSynthesisService

    no_sleep = lambda seconds: None  # noqa: E731
    return PipelineOrchestrator(
        celebrities=celebrities,
        script_service=ScriptGenerationService(script_provider or FakeScriptProvider(), settings, sleep=no_sleep),
        speech_service=SpeechSynthesisService(speech_provider or FakeSpeechProvider(), settings, sleep=no_sleep),
        composer=MediaComposer(settings, runner=encoder or FakeEncoder()),
        publisher=PublishService(LocalObjectStorage(settings=settings)),
        record_store=record_store,
    )
