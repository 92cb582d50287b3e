"""Script stage: narration generation through a text-completion provider.

The adapter builds a structured prompt from the celebrity profile, asks the
provider for narration, and checks the result against the speaking-rate
budget of the requested duration. Transient provider failures are retried
here with exponential backoff; length violations fail fast.
"""

import math
import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from ..config import get_settings
from ..errors import ProviderError, ScriptTooLongError, ScriptTooShortError
from ..logging_config import LoggerMixin
from ..models import CelebrityProfile, GenerationRequest, ScriptResult, VideoStyle
from ..utils.retry import call_with_retries
from .api_client import ApiClient


STYLE_PROMPTS: Dict[VideoStyle, str] = {
    VideoStyle.DOCUMENTARY: "Use a calm, informative documentary style with detailed facts and context.",
    VideoStyle.ENERGETIC: "Use an energetic, exciting tone with dynamic language and enthusiasm.",
    VideoStyle.INSPIRATIONAL: "Focus on the inspirational aspects of their journey and achievements.",
    VideoStyle.HIGHLIGHT: "Emphasize the most exciting career highlights and memorable moments.",
}

SCRIPT_TEMPLATE = """Write a {duration}-second narration about {name}, a professional {sport} player.

Context:
- Sport: {sport}
- Position: {position}
- Team: {team}
- Nationality: {nationality}
- Biography: {biography}
- Key achievements: {achievements}

Requirements:
- About {target_words} words, it is read aloud at {words_per_minute} words per minute
- Narrator voice: {voice}
- Style: {style}
- Open with a hook, cover background, achievements and legacy, close with a question to the viewer
- Avoid controversial politics, personal scandals and unverified claims

Output plain narration text only, no headings or stage directions."""

# Emphasis and pause markup some models add despite the instructions
_MARKUP = re.compile(r"\[(?:PAUSE|pause)[^\]]*\]|\*+")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class Completion:
    """Text returned by a script provider."""
    text: str
    tokens_used: int


class ScriptProvider(Protocol):
    """Text completion provider."""

    def complete(self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float) -> Completion:
        ...


class HttpScriptProvider(LoggerMixin):
    """OpenAI-compatible chat completions endpoint."""

    def __init__(self, settings=None, client: Optional[ApiClient] = None):
        self.settings = settings or get_settings()
        self.client = client or ApiClient(
            provider="script-provider",
            base_url=self.settings.script_api_url,
            timeout=self.settings.script_timeout,
            api_key=self.settings.script_api_key,
        )

    def complete(self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float) -> Completion:
        payload = {
            "model": self.settings.script_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        body = self.client.post_json("/v1/chat/completions", payload)

        try:
            text = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError("Script provider returned no choices", provider="script-provider") from e
        if not isinstance(text, str) or not text.strip():
            raise ProviderError("Script provider returned empty narration", provider="script-provider")

        usage = body.get("usage") or {}
        tokens_used = usage.get("total_tokens")
        if not isinstance(tokens_used, int):
            tokens_used = estimate_tokens(system_prompt + user_prompt + text)
        return Completion(text=text.strip(), tokens_used=tokens_used)


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters."""
    return math.ceil(len(text) / 4)


def clean_narration(text: str) -> str:
    """Strip emphasis/pause markup and collapse whitespace."""
    return _WHITESPACE.sub(" ", _MARKUP.sub(" ", text)).strip()


def count_words(text: str) -> int:
    return len(text.split())


class ScriptGenerationService(LoggerMixin):
    """Generate and validate narration for one reel."""

    def __init__(
        self,
        provider: ScriptProvider,
        settings=None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.settings = settings or get_settings()
        self.provider = provider
        self._sleep = sleep

    # ---------------------------
    # Budget
    # ---------------------------

    def target_words(self, duration: int) -> int:
        """Word budget for a narration of ``duration`` seconds."""
        return math.ceil(round(duration * self.settings.words_per_second, 6))

    def word_bounds(self, duration: int) -> tuple:
        """Inclusive (min, max) word counts accepted for ``duration``."""
        target = self.target_words(duration)
        tolerance = self.settings.script_length_tolerance
        return (
            math.floor(round(target * (1 - tolerance), 6)),
            math.ceil(round(target * (1 + tolerance), 6)),
        )

    # ---------------------------
    # Generation
    # ---------------------------

    def generate(self, celebrity: CelebrityProfile, request: GenerationRequest) -> ScriptResult:
        """Generate narration for ``celebrity`` fitting ``request.duration``.

        Args:
            celebrity: Subject of the reel
            request: Generation request (duration, style, voice, custom prompt)

        Returns:
            ScriptResult with cleaned narration, word count and token usage

        Raises:
            ScriptTooShortError: Narration is under the lower word bound
            ScriptTooLongError: Narration is over the upper word bound
            ProviderError: Permanent provider failure, or transient failures
                that outlasted the retry budget
        """
        target = self.target_words(request.duration)
        system_prompt = (
            f"You are a professional sports content creator. Create a {request.duration}-second "
            f"script about {celebrity.name}, a {celebrity.sport} player. Focus on their achievements "
            f"and impact on the sport."
        )
        user_prompt = request.custom_prompt or self.build_prompt(celebrity, request)

        self.logger.info(
            "Generating script",
            celebrity_id=celebrity.id,
            duration=request.duration,
            target_words=target,
            custom_prompt=bool(request.custom_prompt),
        )

        completion = call_with_retries(
            lambda: self.provider.complete(
                system_prompt,
                user_prompt,
                max_tokens=target * 2,
                temperature=self.settings.script_temperature,
            ),
            max_tries=self.settings.provider_max_retries + 1,
            base_delay=self.settings.provider_backoff_base,
            max_delay=self.settings.provider_backoff_max,
            operation="script generation",
            sleep=self._sleep,
        )

        text = clean_narration(completion.text)
        word_count = count_words(text)
        self._check_length(word_count, request.duration)

        result = ScriptResult(
            text=text,
            word_count=word_count,
            tokens_used=completion.tokens_used,
            title=self.build_title(celebrity),
            estimated_duration=round(word_count / self.settings.words_per_second, 2),
        )
        self.logger.info(
            "Script generated",
            celebrity_id=celebrity.id,
            word_count=word_count,
            tokens_used=completion.tokens_used,
            estimated_duration=result.estimated_duration,
        )
        return result

    def build_prompt(self, celebrity: CelebrityProfile, request: GenerationRequest) -> str:
        """Fill the narration template for ``celebrity``."""
        return SCRIPT_TEMPLATE.format(
            duration=request.duration,
            name=celebrity.name,
            sport=celebrity.sport,
            position=celebrity.position or "Player",
            team=celebrity.team or "Various teams",
            nationality=celebrity.nationality or "Unknown",
            biography=celebrity.biography or "Not provided",
            achievements=", ".join(celebrity.achievements) or "career highlights",
            target_words=self.target_words(request.duration),
            words_per_minute=round(self.settings.words_per_second * 60),
            voice=request.voice_type.value.replace("_", " "),
            style=STYLE_PROMPTS[request.style],
        )

    @staticmethod
    def build_title(celebrity: CelebrityProfile) -> str:
        return f"{celebrity.name}: {celebrity.sport} Legend"

    def _check_length(self, word_count: int, duration: int) -> None:
        minimum, maximum = self.word_bounds(duration)
        target = self.target_words(duration)
        if word_count < minimum:
            self.logger.warning("Script too short", word_count=word_count, minimum=minimum, target=target)
            raise ScriptTooShortError(
                f"{word_count} words, expected at least {minimum} for {duration}s",
                word_count=word_count,
                target_words=target,
            )
        if word_count > maximum:
            self.logger.warning("Script too long", word_count=word_count, maximum=maximum, target=target)
            raise ScriptTooLongError(
                f"{word_count} words, expected at most {maximum} for {duration}s",
                word_count=word_count,
                target_words=target,
            )
