"""
Pipeline orchestration and execution management.

Owns error aggregation, filesystem cleanup on failure, and statistics.
Coordinates between FrameProcessor and the SessionStore.
"""

import time
import logging
from typing import Optional, Dict, Any
from datetime import datetime

from openai import AsyncOpenAI

from .config import WorkerConfig
from .errors import FrameWorkerError, PipelineFailure, user_message
from .models import ExtractionRequest, PipelineResult, Session, WorkerStats
from .processor import FrameProcessor
from .sessions import SessionStore
from .logging_setup import log_exception

logger = logging.getLogger("frame_worker")


class PipelineOrchestrator:
    """Manages pipeline execution flow and coordination"""

    def __init__(self, config: WorkerConfig, store: SessionStore,
                 vision_client: Optional[AsyncOpenAI] = None):
        self.config = config
        self.store = store
        self.processor = FrameProcessor(config, vision_client)
        self.reset_stats()

    def execute_pipeline(self, session: Session, source_path: str, request: ExtractionRequest) -> PipelineResult:
        """
        Execute the complete pipeline for one session.

        The uploaded source is always removed afterwards. On failure the
        session directory is removed too and no frames are returned.

        Returns:
            PipelineResult; success=False carries error_type and a user-facing message
        """
        start_time = time.time()

        try:
            result = self.processor.process_video(session, source_path, request)
            self.stats['sessions_processed'] += 1
            return result

        except Exception as e:
            error = e if isinstance(e, FrameWorkerError) else PipelineFailure(str(e))
            log_exception(logger, f"Pipeline failed for session {session.id}: {type(error).__name__}: {e}")

            self.stats['sessions_failed'] += 1
            self._discard(session)

            return PipelineResult(
                success=False,
                session_id=session.id,
                error=user_message(error),
                error_type=type(error).__name__,
                metrics={'processing_time_sec': time.time() - start_time}
            )

        finally:
            self.stats['total_processing_time'] += time.time() - start_time
            self._remove_source(source_path)

    def _discard(self, session: Session) -> None:
        try:
            self.store.discard(session)
        except OSError as e:
            log_exception(logger, f"Error removing output for session {session.id}: {e}")

    def _remove_source(self, source_path: str) -> None:
        try:
            self.store.discard_source(source_path)
        except OSError as e:
            log_exception(logger, f"Error removing upload {source_path}: {e}")

    def get_stats(self) -> Dict[str, Any]:
        """Get orchestrator statistics"""
        uptime = (datetime.now() - self.stats['start_time']).total_seconds()
        finished = self.stats['sessions_processed'] + self.stats['sessions_failed']

        return WorkerStats(
            sessions_processed=self.stats['sessions_processed'],
            sessions_failed=self.stats['sessions_failed'],
            total_processing_time=self.stats['total_processing_time'],
            average_processing_time=self.stats['total_processing_time'] / finished if finished else 0.0,
            uptime_seconds=uptime,
            success_rate=self.stats['sessions_processed'] / finished if finished else 0.0
        ).to_dict()

    def reset_stats(self) -> None:
        """Reset orchestrator statistics"""
        self.stats = {
            'sessions_processed': 0,
            'sessions_failed': 0,
            'total_processing_time': 0.0,
            'start_time': datetime.now()
        }
        logger.debug("Orchestrator statistics reset")
