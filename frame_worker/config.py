"""
Configuration management for the frame worker.

Centralizes all configuration loading from environment variables
and provides type-safe access to configuration values.
"""

import os
import logging
from dataclasses import dataclass
from typing import List

logger = logging.getLogger("frame_worker")


def _default_ffmpeg_path() -> str:
    """Prefer a bundled ffmpeg binary next to the working directory"""
    for name in ("ffmpeg.exe", "ffmpeg"):
        candidate = os.path.join(os.getcwd(), "ffmpeg", name)
        if os.path.isfile(candidate):
            return candidate
    return "ffmpeg"


@dataclass
class WorkerConfig:
    """Configuration for the frame worker"""

    # Data directory
    DATA_DIR: str = "./data"

    # External tools
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"
    PROBE_TIMEOUT_SEC: float = 30.0
    EXTRACT_TIMEOUT_SEC: float = 600.0

    # Vision service
    OPENAI_API_KEY: str = ""
    VISION_MODEL: str = "gpt-4o-mini"
    VISION_TIMEOUT_SEC: float = 60.0
    VISION_MAX_CONCURRENT: int = 5
    AI_SAMPLE_SIZE: int = 5

    # Analysis caps
    QUALITY_SCORE_LIMIT: int = 100
    SCENE_FRAME_LIMIT: int = 50
    SCENE_THRESHOLD: float = 30.0
    ANALYSIS_REPORT_LIMIT: int = 20
    BLUR_THRESHOLD: int = 30

    # Uploads and retention
    MAX_UPLOAD_MB: int = 100
    SESSION_RETENTION_SEC: int = 3600
    CLEANUP_INTERVAL_SEC: int = 1800

    # HTTP server
    HTTP_PORT: int = 3000

    # Logging
    LOG_LEVEL: str = "INFO"

    @classmethod
    def from_env(cls) -> 'WorkerConfig':
        """Load configuration from environment variables"""
        config = cls()

        config.DATA_DIR = os.getenv("DATA_DIR", "./data")

        # External tools
        config.FFMPEG_PATH = os.getenv("FFMPEG_PATH") or _default_ffmpeg_path()
        config.FFPROBE_PATH = os.getenv("FFPROBE_PATH", "ffprobe")
        config.PROBE_TIMEOUT_SEC = float(os.getenv("PROBE_TIMEOUT_SEC", "30"))
        config.EXTRACT_TIMEOUT_SEC = float(os.getenv("EXTRACT_TIMEOUT_SEC", "600"))

        # Vision service
        config.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
        config.VISION_MODEL = os.getenv("VISION_MODEL", "gpt-4o-mini")
        config.VISION_TIMEOUT_SEC = float(os.getenv("VISION_TIMEOUT_SEC", "60"))
        config.VISION_MAX_CONCURRENT = int(os.getenv("VISION_MAX_CONCURRENT", "5"))
        config.AI_SAMPLE_SIZE = int(os.getenv("AI_SAMPLE_SIZE", "5"))

        # Analysis caps
        config.QUALITY_SCORE_LIMIT = int(os.getenv("QUALITY_SCORE_LIMIT", "100"))
        config.SCENE_FRAME_LIMIT = int(os.getenv("SCENE_FRAME_LIMIT", "50"))
        config.SCENE_THRESHOLD = float(os.getenv("SCENE_THRESHOLD", "30"))
        config.ANALYSIS_REPORT_LIMIT = int(os.getenv("ANALYSIS_REPORT_LIMIT", "20"))
        config.BLUR_THRESHOLD = int(os.getenv("BLUR_THRESHOLD", "30"))

        # Uploads and retention
        config.MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "100"))
        config.SESSION_RETENTION_SEC = int(os.getenv("SESSION_RETENTION_SEC", "3600"))
        config.CLEANUP_INTERVAL_SEC = int(os.getenv("CLEANUP_INTERVAL_SEC", "1800"))

        # HTTP server
        config.HTTP_PORT = int(os.getenv("HTTP_PORT", os.getenv("PORT", "3000")))

        # Logging
        config.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

        return config

    def validate(self) -> None:
        """Validate configuration and raise errors for invalid or missing values"""
        problems: List[str] = []

        for name in ("PROBE_TIMEOUT_SEC", "EXTRACT_TIMEOUT_SEC", "VISION_TIMEOUT_SEC"):
            if getattr(self, name) <= 0:
                problems.append(f"{name} must be positive")

        for name in ("AI_SAMPLE_SIZE", "VISION_MAX_CONCURRENT", "QUALITY_SCORE_LIMIT",
                     "SCENE_FRAME_LIMIT", "MAX_UPLOAD_MB"):
            if getattr(self, name) < 1:
                problems.append(f"{name} must be at least 1")

        if not 0 <= self.SCENE_THRESHOLD <= 255:
            problems.append("SCENE_THRESHOLD must be between 0 and 255")

        if not 0 <= self.BLUR_THRESHOLD <= 100:
            problems.append("BLUR_THRESHOLD must be between 0 and 100")

        # Vision analysis is optional per upload; without a key it falls back
        if not self.OPENAI_API_KEY:
            logger.warning("OPENAI_API_KEY not set, AI analysis will return fallback annotations")

        if problems:
            raise ValueError(f"Invalid or missing configuration: {', '.join(problems)}")

    @property
    def uploads_dir(self) -> str:
        return os.path.join(self.DATA_DIR, "uploads")

    @property
    def frames_dir(self) -> str:
        return os.path.join(self.DATA_DIR, "frames")

    @property
    def log_dir(self) -> str:
        return os.path.join(self.DATA_DIR, "logs")

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024
