"""
Session-scoped filesystem state.

Creates per-upload working directories, resolves them for the download
and browsing endpoints, sweeps expired ones, and packs frames into ZIPs.
"""

import io
import os
import re
import time
import uuid
import zipfile
import logging
from threading import Thread, Event
from typing import Any, List, Mapping, Optional

from .config import WorkerConfig
from .errors import ArchiveFailure, InvalidParameter, SessionNotFound
from .models import ExtractionMode, ExtractionRequest, Session
from .pipeline.util import clean_filename, ensure_dir, list_frame_files, remove_path
from .logging_setup import log_exception

logger = logging.getLogger("frame_worker")


ALLOWED_VIDEO_TYPES = [
    'video/mp4', 'video/mpeg', 'video/quicktime', 'video/x-msvideo',
    'video/x-matroska', 'video/webm', 'video/x-flv', 'video/3gpp'
]

_SESSION_ID_RE = re.compile(r"^[0-9a-f]{32}$")

_TRUE_VALUES = {"1", "true", "on", "yes"}


class SessionStore:
    """Owns the uploads and frames directories under DATA_DIR"""

    def __init__(self, config: WorkerConfig):
        self.config = config
        self.uploads_dir = config.uploads_dir
        self.frames_dir = config.frames_dir
        ensure_dir(self.uploads_dir)
        ensure_dir(self.frames_dir)

    def create_session(self) -> Session:
        """Allocate a new session with an empty output directory"""
        session_id = uuid.uuid4().hex
        output_dir = os.path.join(self.frames_dir, session_id)
        os.makedirs(output_dir)
        logger.debug(f"Created session {session_id}")
        return Session(id=session_id, output_dir=output_dir)

    def upload_path(self, session: Session, filename: str) -> str:
        """Where to store the uploaded source for a session"""
        return os.path.join(self.uploads_dir, f"{session.id}_{clean_filename(filename)}")

    def session_dir(self, session_id: str) -> str:
        """Resolve an existing session directory"""
        if not _SESSION_ID_RE.match(session_id or ""):
            raise SessionNotFound(session_id)
        path = os.path.join(self.frames_dir, session_id)
        if not os.path.isdir(path):
            raise SessionNotFound(session_id)
        return path

    def list_frames(self, session_id: str) -> List[str]:
        """Frame filenames of a session in extraction order"""
        return list_frame_files(self.session_dir(session_id))

    def discard(self, session: Session, source_path: Optional[str] = None) -> None:
        """Remove everything a session left on disk"""
        for path in (session.output_dir, source_path):
            if path and remove_path(path):
                logger.info(f"Removed {path}")

    def discard_source(self, source_path: str) -> None:
        """Remove an uploaded source video once it is no longer needed"""
        if remove_path(source_path):
            logger.debug(f"Removed upload {source_path}")

    def sweep_expired(self, now: Optional[float] = None) -> List[str]:
        """Delete uploads and session directories older than the retention window"""
        now = time.time() if now is None else now
        cutoff = now - self.config.SESSION_RETENTION_SEC
        removed = []

        for directory in (self.uploads_dir, self.frames_dir):
            for name in os.listdir(directory):
                path = os.path.join(directory, name)
                try:
                    if os.stat(path).st_mtime < cutoff:
                        remove_path(path)
                        removed.append(path)
                        logger.info(f"Cleaned up: {path}")
                except OSError as e:
                    logger.warning(f"Could not clean up {path}: {e}")

        return removed

    def build_archive(self, session_id: str) -> bytes:
        """ZIP every file of a session directory, entries stored by bare filename"""
        directory = self.session_dir(session_id)
        buffer = io.BytesIO()

        try:
            with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
                for name in sorted(os.listdir(directory)):
                    path = os.path.join(directory, name)
                    if os.path.isfile(path):
                        archive.write(path, arcname=name)
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveFailure(f"Error creating ZIP for session {session_id}: {e}")

        return buffer.getvalue()


def start_cleanup_thread(store: SessionStore, interval: float, stop_event: Optional[Event] = None) -> Thread:
    """Run the retention sweep periodically on a daemon thread"""
    stop_event = stop_event or Event()

    def run_sweep():
        while not stop_event.wait(interval):
            try:
                store.sweep_expired()
            except Exception as e:
                log_exception(logger, f"Cleanup sweep failed: {e}")

    thread = Thread(target=run_sweep, daemon=True, name="session-cleanup")
    thread.start()
    logger.info(f"Session cleanup running every {interval}s")
    return thread


def _parse_float(name: str, value: Any) -> Optional[float]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f"{name} must be a number, got {value!r}")


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES


def parse_extraction_request(form: Mapping[str, Any]) -> ExtractionRequest:
    """
    Build an ExtractionRequest from raw form fields

    Accepts either `mode` (+ `rate`) or the legacy `frameRate` field,
    where "all" means every frame and a number means a fixed rate.
    """
    mode_value = form.get('mode')
    rate = _parse_float('rate', form.get('rate'))

    if not mode_value:
        frame_rate = str(form.get('frameRate') or 'all').strip()
        if frame_rate == 'all':
            mode_value = ExtractionMode.ALL.value
        else:
            mode_value = ExtractionMode.FIXED_RATE.value
            rate = _parse_float('frameRate', frame_rate)

    try:
        mode = ExtractionMode(str(mode_value).strip())
    except ValueError:
        raise InvalidParameter(f"Unknown extraction mode: {mode_value!r}")

    return ExtractionRequest(
        mode=mode,
        rate=rate,
        start_time=_parse_float('startTime', form.get('startTime')),
        end_time=_parse_float('endTime', form.get('endTime')),
        enable_ai=_parse_flag(form.get('enableAI')),
        remove_blurry=_parse_flag(form.get('removeBlurry')),
        detect_scenes=_parse_flag(form.get('detectScenes'))
    )
