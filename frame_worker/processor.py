"""
Frame extraction pipeline.

Runs the stages for one session in order and returns the assembled result.
Fatal stage errors propagate to the orchestrator, which owns cleanup.
"""

import time
import logging
from typing import List, Optional

from openai import AsyncOpenAI

from .config import WorkerConfig
from .models import (
    AIAnnotation, ExtractionMode, ExtractionRequest, FrameAnalysis,
    PipelineResult, Scene, Session
)
from .pipeline.plan import build_extraction_command
from .pipeline.probe import probe_video
from .pipeline.frames import extract_frames
from .pipeline.quality import score_frames, remove_blurry_frames
from .pipeline.scenes import detect_scenes
from .pipeline.vision import annotate_frames

logger = logging.getLogger("frame_worker")


class FrameProcessor:
    """Handles frame pipeline execution for a single session"""

    def __init__(self, config: WorkerConfig, vision_client: Optional[AsyncOpenAI] = None):
        self.config = config
        self.vision_client = vision_client

    def process_video(self, session: Session, source_path: str, request: ExtractionRequest) -> PipelineResult:
        """
        Process an uploaded video through the pipeline.

        Args:
            session: Session owning the output directory
            source_path: Path of the uploaded video
            request: Extraction parameters, validated during planning

        Returns:
            PipelineResult with frames, analysis, and optional scenes/AI annotations
        """
        start_time = time.time()
        stages_completed = []

        # Planning validates the request before any process is spawned
        command = build_extraction_command(request, source_path, session.output_dir, self.config.FFMPEG_PATH)
        logger.info(f"Processing session {session.id}: mode={ExtractionMode(request.mode).value}")
        stages_completed.append("plan")

        metadata = probe_video(source_path, self.config)
        stages_completed.append("probe")

        frames = extract_frames(command, session.output_dir, self.config.EXTRACT_TIMEOUT_SEC)
        extracted_count = len(frames)
        stages_completed.append("extract")

        analysis = score_frames(frames, self.config.QUALITY_SCORE_LIMIT, self.config.BLUR_THRESHOLD)
        scored_count = len(analysis)
        stages_completed.append("quality")

        # Later stages only ever see the reduced list
        if request.remove_blurry:
            frames, analysis = remove_blurry_frames(frames, analysis)
            stages_completed.append("blur")

        scenes: Optional[List[Scene]] = None
        if request.detect_scenes:
            scenes = detect_scenes(frames, self.config.SCENE_FRAME_LIMIT, self.config.SCENE_THRESHOLD)
            stages_completed.append("scenes")

        ai_annotations: Optional[List[AIAnnotation]] = None
        if request.enable_ai:
            ai_annotations = annotate_frames(frames, self.config, self.vision_client)
            self._apply_keyframes(analysis, ai_annotations)
            stages_completed.append("vision")

        processing_time = time.time() - start_time
        logger.info(f"READY: Session {session.id} completed in {processing_time:.2f}s with {len(frames)} frames")

        return PipelineResult(
            success=True,
            session_id=session.id,
            stages_completed=stages_completed,
            metadata=metadata,
            frames=frames,
            analysis=analysis[:self.config.ANALYSIS_REPORT_LIMIT],
            scenes=scenes,
            ai_annotations=ai_annotations,
            metrics={
                'processing_time_sec': processing_time,
                'frames_extracted': extracted_count,
                'frames_removed': extracted_count - len(frames),
                'frames_scored': scored_count,
            }
        )

    def _apply_keyframes(self, analysis: List[FrameAnalysis], annotations: List[AIAnnotation]) -> None:
        """Carry the AI keyframe judgment onto the matching analysis records"""
        keyframes = {annotation.filename for annotation in annotations if annotation.is_keyframe}
        for record in analysis:
            if record.filename in keyframes:
                record.is_keyframe = True
