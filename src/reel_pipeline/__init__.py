"""
Celebrity Reel Pipeline

Queue-driven generation of short narrated sports reels: narration script,
speech synthesis, video composition and publishing.
"""

__version__ = "0.1.0"
__author__ = "PsiLab Technology"

from .models import (
    GenerationRequest,
    CelebrityProfile,
    Job,
    JobProgress,
    JobStatusEnum,
    QualityTier,
    QueueMetrics,
    QueueStatus,
    ReelArtifact,
    StageName,
    VideoStyle,
    VoiceRegion,
    VoiceType,
)

__all__ = [
    "GenerationRequest",
    "CelebrityProfile",
    "Job",
    "JobProgress",
    "JobStatusEnum",
    "QualityTier",
    "QueueMetrics",
    "QueueStatus",
    "ReelArtifact",
    "StageName",
    "VideoStyle",
    "VoiceRegion",
    "VoiceType",
]
