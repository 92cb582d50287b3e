"""
Speech stage: narration audio through a text-to-speech provider.

Features:
- Voice persona and accent region mapped to a provider voice id
- Transient provider failures retried with exponential backoff
- Configurable handling of audio that misses the requested duration
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

from ..config import get_settings
from ..errors import ProviderError
from ..logging_config import LoggerMixin
from ..models import AudioResult, VoiceRegion, VoiceType
from ..utils.retry import call_with_retries
from .api_client import ApiClient


DURATION_HEADER = "X-Audio-Duration"

VOICE_TABLE: Dict[VoiceType, Dict[VoiceRegion, str]] = {
    VoiceType.MALE_NARRATOR: {VoiceRegion.US: "Matthew", VoiceRegion.UK: "Brian", VoiceRegion.AU: "Russell"},
    VoiceType.FEMALE_NARRATOR: {VoiceRegion.US: "Joanna", VoiceRegion.UK: "Emma", VoiceRegion.AU: "Olivia"},
    VoiceType.SPORTS_COMMENTATOR: {VoiceRegion.US: "Justin", VoiceRegion.UK: "Brian", VoiceRegion.AU: "Russell"},
    VoiceType.DOCUMENTARY_STYLE: {VoiceRegion.US: "Matthew", VoiceRegion.UK: "Arthur", VoiceRegion.AU: "Russell"},
    VoiceType.ENERGETIC_HOST: {VoiceRegion.US: "Joey", VoiceRegion.UK: "Brian", VoiceRegion.AU: "Russell"},
    VoiceType.CALM_NARRATOR: {VoiceRegion.US: "Matthew", VoiceRegion.UK: "Arthur", VoiceRegion.AU: "Russell"},
}


def resolve_voice(voice_type: VoiceType, region: VoiceRegion) -> str:
    """Provider voice id for a persona and accent region."""
    return VOICE_TABLE[voice_type][region]


@dataclass
class SynthesizedAudio:
    """Raw provider output; ``duration_sec`` is None when the provider omits it."""
    audio: bytes
    duration_sec: Optional[float] = None


class SpeechProvider(Protocol):
    """Text-to-speech provider."""

    def synthesize(self, text: str, voice_id: str, output_format: str, sample_rate: int) -> SynthesizedAudio:
        ...


class HttpSpeechProvider(LoggerMixin):
    """HTTP speech endpoint returning audio bytes and a duration header."""

    def __init__(self, settings=None, client: Optional[ApiClient] = None):
        self.settings = settings or get_settings()
        self.client = client or ApiClient(
            provider="speech-provider",
            base_url=self.settings.tts_api_url,
            timeout=self.settings.speech_timeout,
            api_key=self.settings.tts_api_key,
        )

    def synthesize(self, text: str, voice_id: str, output_format: str, sample_rate: int) -> SynthesizedAudio:
        payload = {
            "text": text,
            "voice_id": voice_id,
            "output_format": output_format,
            "sample_rate": sample_rate,
        }
        audio, headers = self.client.post_for_bytes("/v1/synthesize", payload)
        if not audio:
            raise ProviderError("Speech provider returned no audio", provider="speech-provider")
        return SynthesizedAudio(audio=audio, duration_sec=self._parse_duration(headers))

    @staticmethod
    def _parse_duration(headers: Dict[str, str]) -> Optional[float]:
        for name, value in headers.items():
            if name.lower() == DURATION_HEADER.lower():
                try:
                    return float(value)
                except (TypeError, ValueError):
                    return None
        return None


class SpeechSynthesisService(LoggerMixin):
    """Turn narration text into audio for one reel."""

    def __init__(
        self,
        provider: SpeechProvider,
        settings=None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.settings = settings or get_settings()
        self.provider = provider
        self._sleep = sleep

    def synthesize(
        self,
        text: str,
        voice_type: VoiceType,
        region: VoiceRegion,
        target_duration: float,
    ) -> AudioResult:
        """
        Synthesize ``text`` with the voice for ``voice_type``/``region``.

        Audio longer or shorter than ``target_duration`` by more than
        ``speech_duration_tolerance`` is logged. With the ``resynthesize``
        policy, audio that is too long is synthesized once more from text
        trimmed in proportion to the overshoot.

        Args:
            text: Narration text
            voice_type: Narrator persona
            region: Accent region
            target_duration: Requested reel duration in seconds

        Returns:
            AudioResult with the audio buffer, measured duration and voice id

        Raises:
            ProviderError: Permanent provider failure, or transient failures
                that outlasted the retry budget
        """
        if not text.strip():
            raise ProviderError("Cannot synthesize empty narration", provider="speech-provider")

        voice_id = resolve_voice(voice_type, region)
        self.logger.info(
            "Synthesizing narration",
            voice_id=voice_id,
            words=len(text.split()),
            target_duration=target_duration,
        )

        audio, duration = self._synthesize_once(text, voice_id)
        verdict = self._check_duration(duration, target_duration)

        if verdict == "long" and self.settings.speech_duration_policy == "resynthesize":
            trimmed = trim_to_duration(text, duration, target_duration)
            self.logger.info(
                "Re-synthesizing trimmed narration",
                voice_id=voice_id,
                original_words=len(text.split()),
                trimmed_words=len(trimmed.split()),
            )
            audio, duration = self._synthesize_once(trimmed, voice_id)
            self._check_duration(duration, target_duration)

        self.logger.info("Narration synthesized", voice_id=voice_id, duration_sec=duration, bytes=len(audio))
        return AudioResult(
            buffer=audio,
            duration_sec=duration,
            voice_id=voice_id,
            output_format=self.settings.tts_output_format,
        )

    def _synthesize_once(self, text: str, voice_id: str) -> Tuple[bytes, float]:
        result = call_with_retries(
            lambda: self.provider.synthesize(
                text,
                voice_id,
                output_format=self.settings.tts_output_format,
                sample_rate=self.settings.tts_sample_rate,
            ),
            max_tries=self.settings.provider_max_retries + 1,
            base_delay=self.settings.provider_backoff_base,
            max_delay=self.settings.provider_backoff_max,
            operation="speech synthesis",
            sleep=self._sleep,
        )
        duration = result.duration_sec
        if duration is None or duration <= 0:
            duration = round(len(text.split()) / self.settings.words_per_second, 2)
            self.logger.debug("Audio duration estimated from word count", duration_sec=duration)
        return result.audio, duration

    def _check_duration(self, duration: float, target: float) -> Optional[str]:
        """Return "long", "short" or None, logging any mismatch."""
        tolerance = self.settings.speech_duration_tolerance
        if duration > target * (1 + tolerance):
            self.logger.warning(
                "Narration longer than requested, output will be cut",
                duration_sec=duration,
                target_duration=target,
            )
            return "long"
        if duration < target * (1 - tolerance):
            self.logger.warning(
                "Narration shorter than requested, output will be padded",
                duration_sec=duration,
                target_duration=target,
            )
            return "short"
        return None


def trim_to_duration(text: str, duration: float, target: float) -> str:
    """Drop trailing words so that ``text`` fits ``target`` at the measured rate."""
    words = text.split()
    if duration <= 0 or duration <= target:
        return text
    keep = max(1, math.floor(len(words) * target / duration))
    trimmed = " ".join(words[:keep])
    # Prefer ending on a sentence boundary when one is close
    cut = max(trimmed.rfind(". "), trimmed.rfind("! "), trimmed.rfind("? "))
    if cut > len(trimmed) * 0.8:
        trimmed = trimmed[:cut + 1]
    return trimmed
