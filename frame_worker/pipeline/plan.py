import os
import math
import logging
from typing import Dict, Any, Optional

import ffmpeg

from ..errors import InvalidParameter
from ..models import ExtractionCommand, ExtractionMode, ExtractionRequest
from .util import FRAME_PATTERN

logger = logging.getLogger("frame_worker")


SCENE_CUT_THRESHOLD = 0.3

# Quoted so the comma stays inside the select expression
SCENE_CUT_FILTER = f"select='gt(scene,{SCENE_CUT_THRESHOLD})'"
KEYFRAME_FILTER = "select='eq(pict_type,PICT_TYPE_I)'"


def _format_number(value: float) -> str:
    return f"{value:g}"


def _check_time(name: str, value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f"{name} must be a number")
    if not math.isfinite(value) or value < 0:
        raise InvalidParameter(f"{name} must be a non-negative number of seconds")
    return value


def validate_request(request: ExtractionRequest) -> None:
    """Reject malformed requests before any process is spawned"""
    try:
        mode = ExtractionMode(request.mode)
    except ValueError:
        raise InvalidParameter(f"Unknown extraction mode: {request.mode!r}")

    if mode == ExtractionMode.FIXED_RATE:
        rate = request.rate
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            raise InvalidParameter("rate must be a positive number for fixed-rate extraction")
        if not math.isfinite(rate) or rate <= 0:
            raise InvalidParameter("rate must be a positive number for fixed-rate extraction")

    start = _check_time("start time", request.start_time)
    end = _check_time("end time", request.end_time)
    if start is not None and end is not None and end < start:
        raise InvalidParameter("end time must not be before start time")


def select_filter(request: ExtractionRequest) -> Optional[str]:
    """Frame-selection filter expression for the request's mode, None for all frames"""
    mode = ExtractionMode(request.mode)
    if mode == ExtractionMode.FIXED_RATE:
        return f"fps={_format_number(float(request.rate))}"
    if mode == ExtractionMode.SCENE_CUT:
        return SCENE_CUT_FILTER
    if mode == ExtractionMode.KEYFRAME:
        return KEYFRAME_FILTER
    return None


def build_extraction_command(request: ExtractionRequest, source_path: str,
                             output_dir: str, ffmpeg_path: str = "ffmpeg") -> ExtractionCommand:
    """
    Build the transcoder invocation for an extraction request

    Every path and parameter ends up as its own argv entry; nothing is
    joined into a shell string.

    Raises:
        InvalidParameter: malformed mode, rate, or time bounds
    """
    validate_request(request)

    input_kwargs: Dict[str, Any] = {}
    start = _check_time("start time", request.start_time)
    end = _check_time("end time", request.end_time)
    if start:
        input_kwargs['ss'] = _format_number(start)
    if end is not None:
        input_kwargs['to'] = _format_number(end)

    output_kwargs: Dict[str, Any] = {}
    vf = select_filter(request)
    if vf:
        output_kwargs['vf'] = vf
    if ExtractionMode(request.mode) in (ExtractionMode.SCENE_CUT, ExtractionMode.KEYFRAME):
        # Write only the selected frames instead of duplicating to a constant rate
        output_kwargs['fps_mode'] = 'vfr'

    output_pattern = os.path.join(output_dir, FRAME_PATTERN)

    stream = (
        ffmpeg
        .input(source_path, **input_kwargs)
        .output(output_pattern, **output_kwargs)
        .global_args('-hide_banner', '-loglevel', 'error')
    )
    args = ffmpeg.compile(stream, cmd=ffmpeg_path, overwrite_output=True)

    logger.debug(f"Planned extraction: {args}")

    return ExtractionCommand(args=list(args), output_pattern=output_pattern)
