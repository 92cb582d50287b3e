"""
Core data models for the celebrity reel pipeline.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union, Dict, Any

from .errors import ValidationError
from .logging_config import get_logger

logger = get_logger(__name__)


MIN_DURATION_SECONDS = 15
MAX_DURATION_SECONDS = 120
MIN_PRIORITY = 1
MAX_PRIORITY = 5


class VoiceType(Enum):
    """Narration voice personas."""
    MALE_NARRATOR = "male_narrator"
    FEMALE_NARRATOR = "female_narrator"
    SPORTS_COMMENTATOR = "sports_commentator"
    DOCUMENTARY_STYLE = "documentary_style"
    ENERGETIC_HOST = "energetic_host"
    CALM_NARRATOR = "calm_narrator"


class VoiceRegion(Enum):
    """Accent region for the narration voice."""
    US = "US"
    UK = "UK"
    AU = "AU"


class VideoStyle(Enum):
    """Editorial style of the generated narration."""
    DOCUMENTARY = "documentary"
    ENERGETIC = "energetic"
    INSPIRATIONAL = "inspirational"
    HIGHLIGHT = "highlight"


class QualityTier(Enum):
    """Output quality tier."""
    HD_720 = "720p"
    HD_1080 = "1080p"

    @property
    def resolution(self) -> Tuple[int, int]:
        """Get (width, height) for the tier."""
        return (1920, 1080) if self is QualityTier.HD_1080 else (1280, 720)


class JobStatusEnum(Enum):
    """Enumeration of job statuses."""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatusEnum.COMPLETED, JobStatusEnum.FAILED, JobStatusEnum.CANCELLED)


class StageName(Enum):
    """Pipeline stages in execution order."""
    SCRIPT = "script"
    SPEECH = "speech"
    COMPOSITION = "composition"
    PUBLISH = "publish"


@dataclass(frozen=True)
class GenerationRequest:
    """Immutable request to generate one reel."""
    celebrity_id: str
    duration: int  # seconds
    voice_type: VoiceType = VoiceType.MALE_NARRATOR
    voice_region: VoiceRegion = VoiceRegion.US
    style: VideoStyle = VideoStyle.DOCUMENTARY
    quality: QualityTier = QualityTier.HD_720
    include_subtitles: bool = True
    custom_prompt: Optional[str] = None
    priority: int = 3

    def validate(self) -> None:
        """Check submission bounds.

        Raises:
            ValidationError: If celebrity, duration or priority is out of range
        """
        if not self.celebrity_id:
            raise ValidationError("Celebrity id cannot be empty")
        if isinstance(self.duration, bool) or not isinstance(self.duration, int):
            raise ValidationError(f"Duration must be an integer number of seconds, got {self.duration!r}")
        if not MIN_DURATION_SECONDS <= self.duration <= MAX_DURATION_SECONDS:
            raise ValidationError(
                f"Duration must be between {MIN_DURATION_SECONDS} and {MAX_DURATION_SECONDS} seconds, "
                f"got {self.duration}"
            )
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            raise ValidationError(f"Priority must be an integer, got {self.priority!r}")
        if not MIN_PRIORITY <= self.priority <= MAX_PRIORITY:
            raise ValidationError(
                f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, got {self.priority}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'celebrity_id': self.celebrity_id,
            'duration': self.duration,
            'voice_type': self.voice_type.value,
            'voice_region': self.voice_region.value,
            'style': self.style.value,
            'quality': self.quality.value,
            'include_subtitles': self.include_subtitles,
            'custom_prompt': self.custom_prompt,
            'priority': self.priority,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GenerationRequest':
        """Create instance from a submission payload.

        Raises:
            ValidationError: If an enum value is unknown
        """
        try:
            return cls(
                celebrity_id=data['celebrity_id'],
                duration=data['duration'],
                voice_type=VoiceType(data.get('voice_type', VoiceType.MALE_NARRATOR.value)),
                voice_region=VoiceRegion(data.get('voice_region', VoiceRegion.US.value)),
                style=VideoStyle(data.get('style', VideoStyle.DOCUMENTARY.value)),
                quality=QualityTier(data.get('quality', QualityTier.HD_720.value)),
                include_subtitles=bool(data.get('include_subtitles', True)),
                custom_prompt=data.get('custom_prompt'),
                priority=data.get('priority', 3),
            )
        except KeyError as e:
            raise ValidationError(f"Missing field: {e.args[0]}") from e
        except ValueError as e:
            raise ValidationError(str(e)) from e


@dataclass
class CelebrityProfile:
    """Subject of a reel."""
    id: str
    name: str
    sport: str
    biography: str = ""
    achievements: List[str] = field(default_factory=list)
    position: Optional[str] = None
    team: Optional[str] = None
    nationality: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Celebrity id cannot be empty")
        if not self.name:
            raise ValueError("Celebrity name cannot be empty")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CelebrityProfile':
        """Create instance from dictionary."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


# ---------------------------
# Stage results
# ---------------------------

@dataclass
class ScriptResult:
    """Narration produced by the script stage."""
    text: str
    word_count: int
    tokens_used: int
    title: str = ""
    estimated_duration: float = 0.0
    stage: StageName = field(default=StageName.SCRIPT, init=False)


@dataclass
class AudioResult:
    """Narration audio produced by the speech stage."""
    buffer: bytes
    duration_sec: float
    voice_id: str
    output_format: str = "mp3"
    stage: StageName = field(default=StageName.SPEECH, init=False)

    def __repr__(self) -> str:
        return (f"AudioResult(bytes={len(self.buffer)}, duration_sec={self.duration_sec}, "
                f"voice_id={self.voice_id!r})")


@dataclass
class VideoResult:
    """Encoded reel produced by the composition stage."""
    buffer: bytes
    duration_sec: float
    resolution: str
    file_size_bytes: int
    stage: StageName = field(default=StageName.COMPOSITION, init=False)

    def __repr__(self) -> str:
        return (f"VideoResult(bytes={self.file_size_bytes}, duration_sec={self.duration_sec}, "
                f"resolution={self.resolution!r})")


@dataclass
class PublishResult:
    """Location of the published reel."""
    storage_key: str
    url: str
    stage: StageName = field(default=StageName.PUBLISH, init=False)


StageResult = Union[ScriptResult, AudioResult, VideoResult, PublishResult]


# ---------------------------
# Job
# ---------------------------

@dataclass
class JobProgress:
    """Last fully completed stage of the running attempt."""
    stage: Optional[str] = None
    percent: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReelArtifact:
    """Reference to a finished reel."""
    storage_key: str
    url: str
    file_size_bytes: int
    duration_sec: float
    resolution: str
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReelArtifact':
        """Create instance from dictionary."""
        return cls(**data)


@dataclass
class Job:
    """One queued request, possibly retried, owned by the scheduler."""
    id: str
    request: GenerationRequest
    status: JobStatusEnum = JobStatusEnum.PENDING
    attempts: int = 0
    max_attempts: int = 3
    progress: JobProgress = field(default_factory=JobProgress)
    error: Optional[str] = None
    result: Optional[ReelArtifact] = None
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate counters after initialization."""
        if self.max_attempts < 1:
            raise ValueError("Max attempts must be at least 1")
        if not 0 <= self.attempts <= self.max_attempts:
            raise ValueError("Attempts must be between 0 and max attempts")

    @property
    def priority(self) -> int:
        return self.request.priority

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def wait_time(self) -> Optional[float]:
        """Seconds between submission and the latest dispatch."""
        if self.started_at is None:
            return None
        return (self.started_at - self.created_at).total_seconds()

    @property
    def processing_time(self) -> Optional[float]:
        """Seconds between the latest dispatch and the terminal transition."""
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the query shape used by callers and the record store."""
        return {
            'id': self.id,
            'status': self.status.value,
            'priority': self.request.priority,
            'request': self.request.to_dict(),
            'progress': self.progress.to_dict(),
            'attempts': self.attempts,
            'max_attempts': self.max_attempts,
            'error': self.error,
            'result': self.result.to_dict() if self.result else None,
            'created_at': self.created_at.isoformat(),
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Job':
        """Create instance from dictionary."""
        def _parse(value: Optional[str]) -> Optional[datetime]:
            return datetime.fromisoformat(value) if value else None

        return cls(
            id=data['id'],
            request=GenerationRequest.from_dict(data['request']),
            status=JobStatusEnum(data['status']),
            attempts=data.get('attempts', 0),
            max_attempts=data.get('max_attempts', 3),
            progress=JobProgress(**(data.get('progress') or {})),
            error=data.get('error'),
            result=ReelArtifact.from_dict(data['result']) if data.get('result') else None,
            created_at=_parse(data.get('created_at')) or datetime.now(),
            started_at=_parse(data.get('started_at')),
            completed_at=_parse(data.get('completed_at')),
        )


# ---------------------------
# Queue introspection
# ---------------------------

@dataclass
class QueueStatus:
    """Point-in-time view of the dispatch loop."""
    processing: bool
    paused: bool
    pending_count: int
    active_jobs: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QueueMetrics:
    """Aggregates recomputed from job history on every request."""
    pending: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    total: int = 0
    average_wait_seconds: float = 0.0
    average_processing_seconds: float = 0.0

    @property
    def success_rate(self) -> float:
        """Completed share of finished (completed or failed) jobs, in percent."""
        finished = self.completed + self.failed
        if finished == 0:
            return 0.0
        return self.completed / finished * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data['success_rate'] = self.success_rate
        return data
