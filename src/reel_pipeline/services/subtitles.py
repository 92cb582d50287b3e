"""Narration subtitles: SRT cues timed at the speaking rate.

Cues are cut from the script text in fixed word chunks. Each chunk covers
``chunk_seconds`` of narration at ``words_per_second``; cues that would
start after the end of the reel are dropped and the last one is clipped
to the reel duration.
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..errors import MediaInputError
from ..logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class SubtitleCue:
    """One timed line of narration."""
    index: int
    start: float
    end: float
    text: str

    def __post_init__(self):
        if self.index < 1:
            raise ValueError("Cue index starts at 1")
        if self.start < 0 or self.end <= self.start:
            raise ValueError(f"Invalid cue timing: {self.start} -> {self.end}")
        if not self.text.strip():
            raise ValueError("Cue text cannot be empty")

    def to_srt(self) -> str:
        return f"{self.index}\n{srt_timestamp(self.start)} --> {srt_timestamp(self.end)}\n{self.text}\n"


def srt_timestamp(seconds: float) -> str:
    """``HH:MM:SS,mmm``."""
    total_ms = int(round(seconds * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def build_cues(text: str, duration: float, words_per_second: float, chunk_seconds: float = 3.0) -> List[SubtitleCue]:
    """Split ``text`` into cues of ``chunk_seconds`` worth of words, within ``duration``."""
    words = text.split()
    chunk = max(1, math.ceil(words_per_second * chunk_seconds))
    cues: List[SubtitleCue] = []

    for offset in range(0, len(words), chunk):
        start = offset / words_per_second
        if start >= duration:
            break
        cue_words = words[offset:offset + chunk]
        end = min((offset + len(cue_words)) / words_per_second, duration)
        cues.append(SubtitleCue(
            index=len(cues) + 1,
            start=round(start, 3),
            end=round(end, 3),
            text=" ".join(cue_words),
        ))
    return cues


def write_srt(cues: List[SubtitleCue], output_path: Path) -> Path:
    """Write ``cues`` as an SRT file.

    Raises:
        MediaInputError: No cues to write
    """
    if not cues:
        raise MediaInputError("Cannot write subtitles without cues")
    output_path.write_text("\n".join(cue.to_srt() for cue in cues), encoding="utf-8")
    logger.debug("Subtitles written", path=str(output_path), cues=len(cues))
    return output_path


def force_style(font_size: int) -> str:
    """libass style override: white text with a black outline near the bottom."""
    return (
        f"FontName=Arial,FontSize={font_size},PrimaryColour=&H00FFFFFF,"
        "OutlineColour=&H00000000,Outline=2,Bold=1,MarginV=20"
    )


def filter_path(path: Path) -> str:
    """Escape a file path for use as an ffmpeg filter option value."""
    return str(path).replace("\\", "/").replace(":", r"\:").replace("'", r"\'")
