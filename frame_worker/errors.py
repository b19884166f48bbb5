"""Exception hierarchy for the frame worker.

Fatal categories abort a session; per-frame analysis failures never surface
as exceptions and are replaced by fallback values inside their stage.
"""

from typing import Optional


class FrameWorkerError(Exception):
    """Base exception for all frame worker errors."""

    pass


class InvalidParameter(FrameWorkerError):
    """Raised when an extraction request is malformed."""

    pass


class ProbeFailure(FrameWorkerError):
    """Raised when the media-probe tool is missing, times out, or exits non-zero."""

    pass


class ProbeParseFailure(ProbeFailure):
    """Raised when the probe report lacks required fields or is not structured."""

    pass


class ExtractionFailure(FrameWorkerError):
    """Raised when the transcoder process cannot be spawned or exits non-zero."""

    def __init__(self, message: str, stderr: Optional[str] = None):
        super().__init__(message)
        self.stderr = stderr or ""


class EmptyExtraction(FrameWorkerError):
    """Raised when extraction succeeds but produces no frames."""

    pass


class ArchiveFailure(FrameWorkerError):
    """Raised when a session's frames cannot be packed into an archive."""

    pass


class SessionNotFound(FrameWorkerError):
    """Raised when a session id does not resolve to an existing directory."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class PipelineFailure(FrameWorkerError):
    """Raised for unexpected errors surfaced by the pipeline."""

    pass


USER_MESSAGES = {
    "InvalidParameter": "Invalid extraction parameters.",
    "ProbeFailure": "Could not read the video file. It may be corrupted or in an unsupported format.",
    "ProbeParseFailure": "Could not read the video file. It may be corrupted or in an unsupported format.",
    "ExtractionFailure": "Error extracting frames. The video file may be corrupted or in an unsupported format.",
    "EmptyExtraction": "No frames could be extracted from the video.",
    "PipelineFailure": "An unexpected error occurred during processing. Please try again.",
}


def user_message(error: Exception) -> str:
    """Return the user-facing message for an error category"""
    name = type(error).__name__
    if isinstance(error, InvalidParameter):
        return f"{USER_MESSAGES['InvalidParameter']} {error}"
    return USER_MESSAGES.get(name, USER_MESSAGES["PipelineFailure"])
