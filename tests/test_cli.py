"""Tests for the command line entry point."""

import json
from unittest.mock import patch

import pytest

from reel_pipeline import cli
from reel_pipeline.models import JobStatusEnum, VoiceType


class TestParseArgs:
    """Test argument parsing."""

    def test_generate_defaults(self):
        args = cli.parse_args(["generate", "--celebrity-id", "c1", "--celebrities", "c.json"])

        assert args.command == "generate"
        assert args.duration == 30
        assert args.priority == 3
        assert args.voice_type == VoiceType.MALE_NARRATOR.value
        assert args.prompt is None
        assert args.subtitles is True

    def test_no_subtitles_flag(self):
        args = cli.parse_args(["generate", "--celebrity-id", "c1", "--celebrities", "c.json", "--no-subtitles"])
        assert args.subtitles is False

    def test_rejects_unknown_style(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["generate", "--celebrity-id", "c1", "--celebrities", "c.json", "--style", "noir"])


class TestCommands:
    """Test command execution."""

    def test_voices_lists_table(self, capsys):
        assert cli.main(["voices"]) == 0

        out = capsys.readouterr().out
        assert "female_narrator" in out
        assert "Joanna" in out and "Olivia" in out

    def test_generate_unknown_celebrity(self, temp_dir, capsys):
        path = temp_dir / "celebrities.json"
        path.write_text(json.dumps([{"id": "c1", "name": "A", "sport": "Golf"}]), encoding="utf-8")

        code = cli.main(["generate", "--celebrity-id", "nobody", "--celebrities", str(path)])

        assert code == 2
        assert "nobody" in capsys.readouterr().err

    def test_generate_invalid_duration(self, temp_dir, test_settings, capsys, restore_logging):
        path = temp_dir / "celebrities.json"
        path.write_text(json.dumps([{"id": "c1", "name": "A", "sport": "Golf"}]), encoding="utf-8")

        with patch.object(cli, "get_settings", return_value=test_settings):
            code = cli.main(["generate", "--celebrity-id", "c1", "--celebrities", str(path), "--duration", "5"])

        assert code == 1
        assert "Duration" in capsys.readouterr().err

    def test_build_scheduler_wires_services(self, celebrity_directory, test_settings, restore_logging):
        scheduler = cli.build_scheduler(celebrity_directory, test_settings)

        assert scheduler.get_status().pending_count == 0
        assert (test_settings.data_dir / "jobs").is_dir()
        assert scheduler.orchestrator.composer.settings is test_settings

    def test_generate_reports_failure(self, temp_dir, test_settings, capsys):
        path = temp_dir / "celebrities.json"
        path.write_text(json.dumps([{"id": "c1", "name": "A", "sport": "Golf"}]), encoding="utf-8")

        class StubScheduler:
            def add_listener(self, listener):
                pass

            def submit(self, request):
                return "job_1"

            def start(self):
                pass

            def shutdown(self, wait=True):
                pass

            def wait_for(self, job_id, timeout=None):
                class Job:
                    status = JobStatusEnum.FAILED
                    error = "ProviderError: unauthorized"
                return Job()

        with patch.object(cli, "build_scheduler", return_value=StubScheduler()):
            code = cli.main(["generate", "--celebrity-id", "c1", "--celebrities", str(path)])

        assert code == 1
        assert "unauthorized" in capsys.readouterr().err

    def test_build_scheduler_logs_to_configured_directory(self, celebrity_directory, test_settings, restore_logging):
        cli.build_scheduler(celebrity_directory, test_settings)

        assert (test_settings.logs_dir / "pipeline.log").exists()
        assert (test_settings.logs_dir / "errors.log").exists()
