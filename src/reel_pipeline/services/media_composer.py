"""Composition stage: encode narration over a still background with ffmpeg.

The encoder output always runs exactly the requested duration: short
narration is padded with silence (``apad``) and long narration is cut by
the ``-t`` cap. Narration can be burned in as SRT subtitles. Every attempt
works in a private scratch directory that is removed on every exit path.
"""

import json
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

from ..config import get_settings
from ..errors import EncodingError, MediaInputError
from ..logging_config import LoggerMixin
from ..models import AudioResult, CelebrityProfile, QualityTier, VideoResult
from ..utils.file_utils import scratch_directory
from .background import background_png
from .subtitles import build_cues, filter_path, force_style, write_srt


Runner = Callable[..., subprocess.CompletedProcess]


class MediaComposer(LoggerMixin):
    """Produce a playable reel from narration audio and a generated background."""

    def __init__(self, settings=None, runner: Optional[Runner] = None):
        self.settings = settings or get_settings()
        self.runner = runner or subprocess.run
        self.ffmpeg_log_level = "warning"
        self.staging_dir = Path(self.settings.cache_dir) / "composition"

    def compose(
        self,
        audio: AudioResult,
        celebrity: CelebrityProfile,
        duration: int,
        quality: QualityTier,
        subtitle_text: Optional[str] = None,
    ) -> VideoResult:
        """
        Encode ``audio`` over the celebrity background.

        Args:
            audio: Narration produced by the speech stage
            celebrity: Subject used for the background visual
            duration: Requested reel duration in seconds
            quality: Output quality tier (sets the frame size)
            subtitle_text: Narration to burn in as subtitles, or None for none

        Returns:
            VideoResult whose duration is exactly ``duration``

        Raises:
            MediaInputError: Audio is empty or the duration is not positive
            EncodingError: ffmpeg exited non-zero, timed out or wrote nothing
        """
        if not audio.buffer:
            raise MediaInputError("Narration audio is empty")
        if duration <= 0:
            raise MediaInputError(f"Duration must be positive, got {duration}")

        width, height = quality.resolution
        resolution = f"{width}x{height}"

        with scratch_directory(self.staging_dir) as scratch:
            image_path = scratch / "background.png"
            audio_path = scratch / f"narration.{audio.output_format or 'mp3'}"
            output_path = scratch / "reel.mp4"

            background_png(celebrity, (width, height), image_path)
            audio_path.write_bytes(audio.buffer)
            subtitle_path = None
            if subtitle_text:
                subtitle_path = self._write_subtitles(subtitle_text, duration, scratch / "narration.srt")

            command = self.build_command(image_path, audio_path, output_path, duration, subtitle_path)
            self.logger.info(
                "Encoding reel",
                celebrity_id=celebrity.id,
                duration=duration,
                resolution=resolution,
                audio_duration=audio.duration_sec,
                subtitles=subtitle_path is not None,
            )
            self._run_encoder(command)

            if not output_path.exists() or output_path.stat().st_size == 0:
                raise EncodingError("Encoder finished without producing output")
            data = output_path.read_bytes()

        self.logger.info("Reel encoded", duration=duration, resolution=resolution, bytes=len(data))
        return VideoResult(
            buffer=data,
            duration_sec=float(duration),
            resolution=resolution,
            file_size_bytes=len(data),
        )

    def build_command(
        self,
        image_path: Path,
        audio_path: Path,
        output_path: Path,
        duration: int,
        subtitle_path: Optional[Path] = None,
    ) -> List[str]:
        """ffmpeg invocation looping the image and capping output at ``duration``.

        With ``subtitle_path`` the SRT cues are burned into the video stream.
        """
        if subtitle_path is not None:
            style = force_style(self.settings.subtitle_font_size)
            filters = f"[0:v]subtitles={filter_path(subtitle_path)}:force_style='{style}'[v];[1:a]apad[a]"
            video_map = "[v]"
        else:
            filters = "[1:a]apad[a]"
            video_map = "0:v"

        return [
            self.settings.ffmpeg_binary,
            "-loglevel", self.ffmpeg_log_level,
            "-y",
            "-loop", "1",
            "-framerate", str(self.settings.frame_rate),
            "-i", str(image_path),
            "-i", str(audio_path),
            "-filter_complex", filters,
            "-map", video_map,
            "-map", "[a]",
            "-c:v", self.settings.video_codec,
            "-preset", self.settings.video_preset,
            "-tune", "stillimage",
            "-pix_fmt", "yuv420p",
            "-c:a", self.settings.audio_codec,
            "-b:a", self.settings.audio_bitrate,
            "-t", str(duration),
            "-movflags", "+faststart",
            str(output_path),
        ]

    def _write_subtitles(self, text: str, duration: int, output_path: Path) -> Optional[Path]:
        cues = build_cues(
            text,
            duration,
            self.settings.words_per_second,
            self.settings.subtitle_chunk_seconds,
        )
        if not cues:
            self.logger.warning("Narration produced no subtitle cues, encoding without subtitles")
            return None
        return write_srt(cues, output_path)

    def _run_encoder(self, command: List[str]) -> None:
        timeout = self.settings.encoder_timeout
        try:
            result = self.runner(command, capture_output=True, text=True, check=False, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            self.logger.error("Encoder timed out", timeout=timeout)
            raise EncodingError(f"Encoder timed out after {timeout}s") from e
        except FileNotFoundError as e:
            raise EncodingError(f"Encoder binary not found: {command[0]}") from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            self.logger.error("Encoder failed", returncode=result.returncode, stderr=stderr[-2000:])
            raise EncodingError(
                f"Encoder exited with code {result.returncode}",
                returncode=result.returncode,
                stderr=stderr,
            )

    def probe_duration(self, media_path: Path) -> float:
        """Container duration of ``media_path`` in seconds, via ffprobe."""
        command = [
            self.settings.ffprobe_binary,
            "-v", "error",
            "-show_format",
            "-of", "json",
            str(media_path),
        ]
        try:
            result = self.runner(command, capture_output=True, text=True, check=True, timeout=60)
            data = json.loads(result.stdout)
            return float(data["format"]["duration"])
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, json.JSONDecodeError, KeyError, ValueError) as exc:
            raise EncodingError(f"Could not probe {media_path}: {exc}") from exc
