"""
Service modules for the celebrity reel pipeline.
"""

from .api_client import ApiClient
from .script_generation import ScriptGenerationService, HttpScriptProvider, ScriptProvider, Completion
from .speech_synthesis import SpeechSynthesisService, HttpSpeechProvider, SpeechProvider, SynthesizedAudio, resolve_voice
from .media_composer import MediaComposer
from .publisher import PublishService, ObjectStorage, LocalObjectStorage
from .record_store import (
    JobRecordStore,
    CelebrityDirectory,
    JsonFileRecordStore,
    InMemoryRecordStore,
    InMemoryCelebrityDirectory,
)
from .pipeline import PipelineOrchestrator, CancellationToken, ProgressCallback
from .job_queue import JobScheduler, QueueListener

__all__ = [
    "ApiClient",
    "ScriptGenerationService",
    "HttpScriptProvider",
    "ScriptProvider",
    "Completion",
    "SpeechSynthesisService",
    "HttpSpeechProvider",
    "SpeechProvider",
    "SynthesizedAudio",
    "resolve_voice",
    "MediaComposer",
    "PublishService",
    "ObjectStorage",
    "LocalObjectStorage",
    "JobRecordStore",
    "CelebrityDirectory",
    "JsonFileRecordStore",
    "InMemoryRecordStore",
    "InMemoryCelebrityDirectory",
    "PipelineOrchestrator",
    "CancellationToken",
    "ProgressCallback",
    "JobScheduler",
    "QueueListener",
]
