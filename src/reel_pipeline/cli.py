"""
Command line entry point.

Usage:
    reel-pipeline generate --celebrity-id c1 --celebrities celebrities.json [--duration 30]
    reel-pipeline voices

Notes:
- ``generate`` needs the script and speech providers configured through
  ``REEL_*`` environment variables (or ``.env``) and ffmpeg on PATH.
- Published reels land under the configured storage directory.
"""

import argparse
import sys
from typing import List, Optional

from .config import create_directories, get_settings
from .errors import NotFoundError, ReelPipelineError
from .logging_config import setup_logging
from .models import (
    MAX_DURATION_SECONDS,
    MAX_PRIORITY,
    MIN_DURATION_SECONDS,
    MIN_PRIORITY,
    GenerationRequest,
    Job,
    JobStatusEnum,
    QualityTier,
    VideoStyle,
    VoiceRegion,
    VoiceType,
)
from .services import (
    HttpScriptProvider,
    HttpSpeechProvider,
    InMemoryCelebrityDirectory,
    JobScheduler,
    JsonFileRecordStore,
    LocalObjectStorage,
    MediaComposer,
    PipelineOrchestrator,
    PublishService,
    QueueListener,
    ScriptGenerationService,
    SpeechSynthesisService,
)
from .services.speech_synthesis import VOICE_TABLE


class ConsoleQueueListener(QueueListener):
    """Minimal console progress reporter."""

    def on_started(self, job: Job) -> None:
        print(f"[START] {job.id} (attempt {job.attempts + 1}/{job.max_attempts})", flush=True)

    def on_progress(self, job: Job) -> None:
        print(f"[PROGRESS] {job.progress.stage} ({job.progress.percent}%)", flush=True)

    def on_retry(self, job: Job, delay: float) -> None:
        print(f"[RETRY] {job.error} - next attempt in {delay:.0f}s", file=sys.stderr, flush=True)

    def on_failed(self, job: Job) -> None:
        print(f"[ERROR] {job.error}", file=sys.stderr, flush=True)


def build_scheduler(celebrities: InMemoryCelebrityDirectory, settings=None) -> JobScheduler:
    """Wire the HTTP providers, ffmpeg composer and local storage into a scheduler."""
    settings = settings or get_settings()
    create_directories(settings)
    setup_logging(settings)
    record_store = JsonFileRecordStore(settings.data_dir)
    orchestrator = PipelineOrchestrator(
        celebrities=celebrities,
        script_service=ScriptGenerationService(HttpScriptProvider(settings), settings),
        speech_service=SpeechSynthesisService(HttpSpeechProvider(settings), settings),
        composer=MediaComposer(settings),
        publisher=PublishService(LocalObjectStorage(settings=settings)),
        record_store=record_store,
    )
    return JobScheduler(orchestrator, settings, record_store=record_store)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="reel-pipeline", description="Generate narrated celebrity reels")
    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Generate one reel and wait for it")
    generate.add_argument("--celebrity-id", required=True, help="Celebrity to feature")
    generate.add_argument("--celebrities", required=True, help="JSON file with celebrity profiles")
    generate.add_argument(
        "--duration",
        type=int,
        default=30,
        help=f"Reel length in seconds ({MIN_DURATION_SECONDS}-{MAX_DURATION_SECONDS}). Default: 30",
    )
    generate.add_argument("--voice-type", choices=[v.value for v in VoiceType], default=VoiceType.MALE_NARRATOR.value)
    generate.add_argument("--voice-region", choices=[r.value for r in VoiceRegion], default=VoiceRegion.US.value)
    generate.add_argument("--style", choices=[s.value for s in VideoStyle], default=VideoStyle.DOCUMENTARY.value)
    generate.add_argument("--quality", choices=[q.value for q in QualityTier], default=QualityTier.HD_720.value)
    generate.add_argument(
        "--priority",
        type=int,
        default=3,
        help=f"Queue priority ({MIN_PRIORITY}-{MAX_PRIORITY}, higher runs first). Default: 3",
    )
    generate.add_argument("--prompt", default=None, help="Custom prompt replacing the built-in template")
    generate.add_argument(
        "--no-subtitles",
        dest="subtitles",
        action="store_false",
        help="Do not burn the narration into the video as subtitles",
    )
    generate.add_argument("--timeout", type=float, default=None, help="Give up waiting after this many seconds")

    commands.add_parser("voices", help="List voice ids per voice type and region")
    return parser.parse_args(argv)


def list_voices() -> int:
    regions = list(VoiceRegion)
    print("voice type".ljust(20) + "".join(r.value.ljust(10) for r in regions))
    for voice_type, voices in VOICE_TABLE.items():
        print(voice_type.value.ljust(20) + "".join(voices[r].ljust(10) for r in regions))
    return 0


def generate(args: argparse.Namespace) -> int:
    celebrities = InMemoryCelebrityDirectory.from_json_file(args.celebrities)
    try:
        celebrities.get_celebrity(args.celebrity_id)
    except NotFoundError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2

    request = GenerationRequest.from_dict({
        "celebrity_id": args.celebrity_id,
        "duration": args.duration,
        "voice_type": args.voice_type,
        "voice_region": args.voice_region,
        "style": args.style,
        "quality": args.quality,
        "priority": args.priority,
        "custom_prompt": args.prompt,
        "include_subtitles": args.subtitles,
    })

    scheduler = build_scheduler(celebrities)
    scheduler.add_listener(ConsoleQueueListener())
    try:
        job_id = scheduler.submit(request)
        print(f"Submitted job: {job_id}")
        scheduler.start()
        job = scheduler.wait_for(job_id, timeout=args.timeout)
    finally:
        scheduler.shutdown(wait=False)

    if job.status == JobStatusEnum.COMPLETED:
        print("\n✅ Reel published")
        print(f"Title: {job.result.title}")
        print(f"URL: {job.result.url}")
        print(f"Duration (s): {job.result.duration_sec:.0f}")
        print(f"Resolution: {job.result.resolution}")
        return 0

    print(f"❌ Job {job_id} ended as {job.status.value}: {job.error}", file=sys.stderr)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.command == "voices":
        return list_voices()
    try:
        return generate(args)
    except ReelPipelineError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
