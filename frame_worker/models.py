"""
Domain models for the frame worker.

Defines the core data structures used throughout the system,
providing type safety and clear interfaces between components.
"""

import os
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List


class ExtractionMode(str, Enum):
    """Frame selection mode for the transcoder"""
    ALL = "all"
    FIXED_RATE = "fixed-rate"
    SCENE_CUT = "scene-cut"
    KEYFRAME = "keyframe"


@dataclass
class Session:
    """One upload-to-result lifecycle with its own output directory"""
    id: str
    output_dir: str
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class VideoMetadata:
    """Probed properties of a source video"""
    width: int
    height: int
    fps: int
    duration_sec: float = 0.0
    frame_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'width': self.width,
            'height': self.height,
            'fps': self.fps,
            'duration': self.duration_sec,
            'totalFrames': self.frame_count,
        }


@dataclass(frozen=True)
class ExtractionRequest:
    """User-chosen extraction parameters and feature toggles"""
    mode: ExtractionMode = ExtractionMode.ALL
    rate: Optional[float] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    enable_ai: bool = False
    remove_blurry: bool = False
    detect_scenes: bool = False


@dataclass(frozen=True)
class ExtractionCommand:
    """A planned transcoder invocation as a discrete argument vector"""
    args: List[str]
    output_pattern: str

    @property
    def program(self) -> str:
        return self.args[0]


@dataclass(frozen=True)
class FrameFile:
    """A single extracted still image"""
    index: int
    path: str

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)


@dataclass
class FrameAnalysis:
    """Per-frame quality record"""
    filename: str
    quality: int
    is_blurry: bool
    is_keyframe: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filename': self.filename,
            'quality': self.quality,
            'isBlurry': self.is_blurry,
            'isKeyframe': self.is_keyframe,
        }


@dataclass
class Scene:
    """A contiguous run of frames"""
    idx: int
    start_frame: int
    frames: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sceneIndex': self.idx,
            'startFrame': self.start_frame,
            'frames': list(self.frames),
        }


@dataclass
class AIAnnotation:
    """Structured judgment returned by the vision service for one frame"""
    filename: str
    quality: int
    is_keyframe: bool
    description: str
    is_blurry: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filename': self.filename,
            'quality': self.quality,
            'isKeyframe': self.is_keyframe,
            'description': self.description,
            'isBlurry': self.is_blurry,
        }


@dataclass
class PipelineResult:
    """Represents the result of running the pipeline for one session"""
    success: bool
    session_id: str
    stages_completed: List[str] = field(default_factory=list)
    metadata: Optional[VideoMetadata] = None
    frames: List[FrameFile] = field(default_factory=list)
    analysis: List[FrameAnalysis] = field(default_factory=list)
    scenes: Optional[List[Scene]] = None
    ai_annotations: Optional[List[AIAnnotation]] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    metrics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, url_prefix: str = "") -> Dict[str, Any]:
        """Serialize for presentation; absent stages are omitted, not emptied"""
        if not self.success:
            return {
                'success': False,
                'sessionId': self.session_id,
                'errorType': self.error_type,
                'error': self.error,
            }

        payload = {
            'success': True,
            'sessionId': self.session_id,
            'frameCount': len(self.frames),
            'frames': [f"{url_prefix}/{frame.filename}" for frame in self.frames],
            'metadata': self.metadata.to_dict() if self.metadata else None,
            'analysis': [record.to_dict() for record in self.analysis],
            'metrics': dict(self.metrics),
        }
        if self.scenes is not None:
            payload['scenes'] = [scene.to_dict() for scene in self.scenes]
        if self.ai_annotations is not None:
            payload['aiAnalysis'] = [annotation.to_dict() for annotation in self.ai_annotations]
        return payload


@dataclass
class WorkerStats:
    """Represents orchestrator statistics"""
    sessions_processed: int
    sessions_failed: int
    total_processing_time: float
    average_processing_time: float
    uptime_seconds: float
    success_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
