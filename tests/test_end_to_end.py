"""End-to-end scenarios: scheduler, orchestrator and real stage adapters with fake providers."""

from reel_pipeline.models import GenerationRequest, JobStatusEnum
from reel_pipeline.services.job_queue import JobScheduler, QueueListener
from reel_pipeline.services.record_store import InMemoryRecordStore, JsonFileRecordStore

from conftest import FakeEncoder, FakeScriptProvider, build_orchestrator


class ProgressListener(QueueListener):
    def __init__(self):
        self.statuses = []
        self.stages = []

    def on_started(self, job):
        self.statuses.append(job.status)

    def on_progress(self, job):
        self.stages.append(job.progress.stage)


class TestEndToEnd:
    """Full pipeline scenarios."""

    def test_reel_generated_and_published(self, test_settings, celebrity_directory):
        store = JsonFileRecordStore(test_settings.data_dir)
        encoder = FakeEncoder()
        listener = ProgressListener()
        scheduler = JobScheduler(
            build_orchestrator(test_settings, celebrity_directory, record_store=store, encoder=encoder),
            test_settings,
            record_store=store,
            listeners=[listener],
        )

        job_id = scheduler.submit(GenerationRequest(celebrity_id="c1", duration=30, priority=1))
        job = scheduler.dispatch_next()

        assert job.id == job_id
        assert listener.statuses == [JobStatusEnum.ACTIVE]
        assert listener.stages == ["script", "speech", "composition", "publish"]
        assert job.status == JobStatusEnum.COMPLETED
        assert job.result.duration_sec == 30
        assert job.result.resolution == "1280x720"
        assert (test_settings.storage_dir / job.result.storage_key).exists()
        assert store.load_job(job_id)["status"] == "completed"
        assert store.list_reels()[0]["url"] == job.result.url
        assert not encoder.scratch_dirs[0].exists()

    def test_script_too_long_fails_job(self, test_settings, celebrity_directory):
        settings = test_settings.model_copy(update={"max_attempts": 1})
        # 113 words is 150% of the 75-word budget for 30 seconds
        provider = FakeScriptProvider(words=113)
        encoder = FakeEncoder()
        scheduler = JobScheduler(
            build_orchestrator(settings, celebrity_directory, script_provider=provider, encoder=encoder),
            settings,
        )

        job_id = scheduler.submit(GenerationRequest(celebrity_id="c1", duration=30, priority=1))
        scheduler.dispatch_next()

        job = scheduler.get_job(job_id)
        assert job.status == JobStatusEnum.FAILED
        assert "ScriptTooLong" in job.error
        assert job.attempts == job.max_attempts == 1
        assert job.progress.stage is None
        assert job.result is None
        assert len(provider.calls) == 1
        assert encoder.commands == []

    def test_subtitled_reel(self, test_settings, celebrity_directory):
        encoder = FakeEncoder()
        scheduler = JobScheduler(build_orchestrator(test_settings, celebrity_directory, encoder=encoder), test_settings)

        scheduler.submit(GenerationRequest(celebrity_id="c1", duration=30, include_subtitles=True))
        job = scheduler.dispatch_next()

        assert job.status == JobStatusEnum.COMPLETED
        command = encoder.commands[0]
        assert "subtitles=" in command[command.index("-filter_complex") + 1]
        assert not encoder.scratch_dirs[0].exists()

    def test_retry_after_record_failure_keeps_one_published_reel(self, test_settings, celebrity_directory):
        class FlakyReelStore(InMemoryRecordStore):
            def __init__(self):
                super().__init__()
                self.failures = 1

            def create_reel(self, reel):
                if self.failures:
                    self.failures -= 1
                    raise OSError("database unavailable")
                super().create_reel(reel)

        store = FlakyReelStore()
        scheduler = JobScheduler(build_orchestrator(test_settings, celebrity_directory, record_store=store), test_settings)

        job_id = scheduler.submit(GenerationRequest(celebrity_id="c1", duration=30))
        first = scheduler.dispatch_next()
        second = scheduler.dispatch_next()

        assert first.status == JobStatusEnum.PENDING
        assert "database unavailable" in first.error
        assert second.id == job_id
        assert second.status == JobStatusEnum.COMPLETED
        assert second.attempts == 1
        blobs = list(test_settings.storage_dir.rglob("*.mp4"))
        assert blobs == [test_settings.storage_dir / second.result.storage_key]
        assert len(store.reels) == 1
