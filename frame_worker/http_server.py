import logging
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from .config import WorkerConfig
from .errors import ArchiveFailure, InvalidParameter, SessionNotFound, user_message
from .logging_setup import log_exception
from .orchestrator import PipelineOrchestrator
from .sessions import ALLOWED_VIDEO_TYPES, SessionStore, parse_extraction_request

logger = logging.getLogger("frame_worker")

UPLOAD_CHUNK_BYTES = 1024 * 1024

# Error categories caused by the request rather than the server
CLIENT_ERRORS = {"InvalidParameter"}


def create_app(config: WorkerConfig, store: SessionStore, orchestrator: PipelineOrchestrator) -> FastAPI:
    """Build the HTTP API around a configured orchestrator"""
    app = FastAPI(title="Frame Worker API")

    @app.get("/healthz")
    async def health_check():
        """Health check endpoint"""
        return {"ok": True, "status": "healthy"}

    @app.get("/stats")
    async def get_stats():
        """Get worker statistics"""
        return orchestrator.get_stats()

    # Plain def: FastAPI runs it in a worker thread, so the pipeline may block
    @app.post("/upload")
    def upload(
        video: Optional[UploadFile] = File(None),
        frameRate: Optional[str] = Form(None),
        mode: Optional[str] = Form(None),
        rate: Optional[str] = Form(None),
        startTime: Optional[str] = Form(None),
        endTime: Optional[str] = Form(None),
        enableAI: Optional[str] = Form(None),
        removeBlurry: Optional[str] = Form(None),
        detectScenes: Optional[str] = Form(None),
    ):
        """Upload a video and extract frames"""
        if video is None or not video.filename:
            raise HTTPException(status_code=400, detail="No video file uploaded. Please select a video file.")

        if video.content_type not in ALLOWED_VIDEO_TYPES:
            raise HTTPException(status_code=400, detail="Invalid file type. Please upload a valid video file.")

        try:
            request = parse_extraction_request({
                'frameRate': frameRate,
                'mode': mode,
                'rate': rate,
                'startTime': startTime,
                'endTime': endTime,
                'enableAI': enableAI,
                'removeBlurry': removeBlurry,
                'detectScenes': detectScenes,
            })
        except InvalidParameter as e:
            raise HTTPException(status_code=400, detail=user_message(e))

        session = store.create_session()
        source_path = store.upload_path(session, video.filename)

        try:
            saved = _save_upload(video, source_path, config.max_upload_bytes)
        except OSError as e:
            log_exception(logger, f"Error saving upload for session {session.id}: {e}")
            store.discard(session, source_path)
            raise

        if not saved:
            store.discard(session, source_path)
            raise HTTPException(
                status_code=400,
                detail=f"File too large. Maximum file size is {config.MAX_UPLOAD_MB}MB."
            )

        result = orchestrator.execute_pipeline(session, source_path, request)
        if not result.success:
            status = 400 if result.error_type in CLIENT_ERRORS else 500
            return JSONResponse(status_code=status, content=result.to_dict())

        return result.to_dict(url_prefix=f"/frames/{session.id}")

    @app.get("/sessions/{session_id}")
    def browse_session(session_id: str):
        """List the frames of a finished session"""
        try:
            names = store.list_frames(session_id)
        except SessionNotFound:
            raise HTTPException(status_code=404, detail="Session not found. It may have expired.")

        return {
            "sessionId": session_id,
            "frameCount": len(names),
            "frames": [f"/frames/{session_id}/{name}" for name in names],
        }

    @app.get("/download-all/{session_id}")
    def download_all(session_id: str):
        """Download a ZIP of all frames of a session"""
        try:
            payload = store.build_archive(session_id)
        except SessionNotFound:
            raise HTTPException(status_code=404, detail="Session not found. It may have expired.")
        except ArchiveFailure as e:
            logger.error(f"Archive error: {e}")
            raise HTTPException(status_code=500, detail="Error creating ZIP file.")

        return Response(
            content=payload,
            media_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="frames_{session_id}.zip"'}
        )

    app.mount("/frames", StaticFiles(directory=store.frames_dir), name="frames")

    return app


def _save_upload(video: UploadFile, destination: str, max_bytes: int) -> bool:
    """Stream an upload to disk; False (and nothing kept) if it exceeds max_bytes"""
    written = 0
    with open(destination, 'wb') as out:
        while True:
            chunk = video.file.read(UPLOAD_CHUNK_BYTES)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                return False
            out.write(chunk)
    return True
