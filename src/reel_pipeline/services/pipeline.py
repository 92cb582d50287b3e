"""
Pipeline orchestrator running one attempt of a reel job.

Stages run strictly forward: script -> speech -> composition -> publish.
Cancellation is checked at every stage boundary up to publishing; once the
attempt starts publishing it runs to completion. If recording the reel
fails after upload, the uploaded object is deleted before the error
propagates.
"""

import threading
from typing import Callable, Optional

from ..errors import JobCancelledError
from ..logging_config import LoggerMixin
from ..models import Job, ReelArtifact, StageName
from .media_composer import MediaComposer
from .publisher import PublishService
from .record_store import CelebrityDirectory, JobRecordStore
from .script_generation import ScriptGenerationService
from .speech_synthesis import SpeechSynthesisService


ProgressCallback = Callable[[StageName, int], None]

STAGE_PERCENT = {
    StageName.SCRIPT: 25,
    StageName.SPEECH: 50,
    StageName.COMPOSITION: 75,
    StageName.PUBLISH: 100,
}


class CancellationToken:
    """
    Cooperative cancellation flag shared by the scheduler and one attempt.

    Once the attempt enters the publish stage the token is committed and
    later cancellation requests are refused.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._committed = False

    def cancel(self) -> bool:
        """Request cancellation. Returns False if the attempt is already publishing."""
        with self._lock:
            if self._committed:
                return False
            self._event.set()
            return True

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def is_committed(self) -> bool:
        return self._committed

    def raise_if_cancelled(self, job_id: str, stage: Optional[StageName] = None) -> None:
        if self._event.is_set():
            raise JobCancelledError(job_id, stage.value if stage else None)

    def commit(self, job_id: str) -> None:
        """Last cancellation check before publishing; refuses cancellation afterwards."""
        with self._lock:
            self.raise_if_cancelled(job_id, StageName.PUBLISH)
            self._committed = True


def _ignore_progress(stage: StageName, percent: int) -> None:
    pass


class PipelineOrchestrator(LoggerMixin):
    """Run the four stages for one job attempt."""

    def __init__(
        self,
        celebrities: CelebrityDirectory,
        script_service: ScriptGenerationService,
        speech_service: SpeechSynthesisService,
        composer: MediaComposer,
        publisher: PublishService,
        record_store: Optional[JobRecordStore] = None,
    ):
        self.celebrities = celebrities
        self.script_service = script_service
        self.speech_service = speech_service
        self.composer = composer
        self.publisher = publisher
        self.record_store = record_store

    def run(
        self,
        job: Job,
        token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ReelArtifact:
        """
        Execute one attempt for ``job``.

        Args:
            job: Snapshot of the job being processed (not mutated)
            token: Cancellation token checked before each stage
            on_progress: Called with (stage, percent) after each completed stage

        Returns:
            ReelArtifact describing the published reel

        Raises:
            JobCancelledError: Cancellation observed at a stage boundary
            ReelPipelineError: Any stage failure, propagated unchanged
        """
        token = token or CancellationToken()
        on_progress = on_progress or _ignore_progress
        request = job.request
        log = self.logger.bind(job_id=job.id, attempt=job.attempts + 1)

        celebrity = self.celebrities.get_celebrity(request.celebrity_id)

        token.raise_if_cancelled(job.id, StageName.SCRIPT)
        log.info("Stage started", stage=StageName.SCRIPT.value)
        script = self.script_service.generate(celebrity, request)
        on_progress(StageName.SCRIPT, STAGE_PERCENT[StageName.SCRIPT])

        token.raise_if_cancelled(job.id, StageName.SPEECH)
        log.info("Stage started", stage=StageName.SPEECH.value)
        audio = self.speech_service.synthesize(
            script.text,
            request.voice_type,
            request.voice_region,
            target_duration=request.duration,
        )
        on_progress(StageName.SPEECH, STAGE_PERCENT[StageName.SPEECH])

        token.raise_if_cancelled(job.id, StageName.COMPOSITION)
        log.info("Stage started", stage=StageName.COMPOSITION.value)
        video = self.composer.compose(
            audio,
            celebrity,
            request.duration,
            request.quality,
            subtitle_text=script.text if request.include_subtitles else None,
        )
        on_progress(StageName.COMPOSITION, STAGE_PERCENT[StageName.COMPOSITION])

        token.commit(job.id)
        log.info("Stage started", stage=StageName.PUBLISH.value)
        published = self.publisher.publish(video, celebrity.id, request.duration)

        artifact = ReelArtifact(
            storage_key=published.storage_key,
            url=published.url,
            file_size_bytes=video.file_size_bytes,
            duration_sec=video.duration_sec,
            resolution=video.resolution,
            title=script.title,
        )
        try:
            if self.record_store is not None:
                self.record_store.create_reel({
                    "job_id": job.id,
                    "celebrity_id": celebrity.id,
                    "title": script.title,
                    "script": script.text,
                    "voice_id": audio.voice_id,
                    "style": request.style.value,
                    "quality": request.quality.value,
                    "tokens_used": script.tokens_used,
                    "subtitles": request.include_subtitles,
                    **artifact.to_dict(),
                })
            on_progress(StageName.PUBLISH, STAGE_PERCENT[StageName.PUBLISH])
        except Exception:
            log.warning("Recording the reel failed, removing the published object", key=published.storage_key)
            self.publisher.unpublish(published.storage_key)
            raise

        log.info("Pipeline finished", url=artifact.url, duration_sec=artifact.duration_sec)
        return artifact
