import logging
from typing import List, Optional

import cv2
import numpy as np

from ..models import FrameFile, Scene

logger = logging.getLogger("frame_worker")


COMPARE_SIZE = (320, 240)
DEFAULT_SCENE_THRESHOLD = 30.0


def load_downsampled(image_path: str) -> Optional[np.ndarray]:
    """Decode a frame and shrink it to COMPARE_SIZE, None if it cannot be read"""
    image = cv2.imread(image_path, cv2.IMREAD_COLOR)
    if image is None:
        return None
    return cv2.resize(image, COMPARE_SIZE, interpolation=cv2.INTER_AREA)


def frame_difference(previous: np.ndarray, current: np.ndarray) -> float:
    """Mean absolute per-sample difference of two downsampled buffers, 0-255"""
    return float(np.mean(cv2.absdiff(previous, current)))


def detect_scenes(frames: List[FrameFile], limit: int = 50,
                  threshold: float = DEFAULT_SCENE_THRESHOLD) -> List[Scene]:
    """
    Group the first `limit` frames into contiguous scenes

    A new scene starts whenever the difference to the previous frame exceeds
    `threshold`. A pair that cannot be compared never starts a scene.

    Returns:
        Ordered scenes; the first always starts at frame 0. Concatenating
        their frame lists gives the prefix without frame 0.
    """
    prefix = frames[:limit]
    if not prefix:
        return []

    # Frame 0 opens scene 0 through start_frame; members are the frames after it
    scenes = [Scene(idx=0, start_frame=0, frames=[])]
    previous = _safe_load(prefix[0])

    for position in range(1, len(prefix)):
        frame = prefix[position]
        current = _safe_load(frame)

        changed = False
        if previous is not None and current is not None:
            try:
                diff = frame_difference(previous, current)
                changed = diff > threshold
                logger.debug(f"Scene diff {prefix[position - 1].filename} -> {frame.filename}: {diff:.2f}")
            except cv2.error as e:
                logger.warning(f"Scene comparison failed at {frame.filename}: {e}")

        if changed:
            scenes.append(Scene(idx=len(scenes), start_frame=position, frames=[frame.filename]))
        else:
            scenes[-1].frames.append(frame.filename)

        previous = current

    logger.info(f"SCENES: {len(scenes)} scenes across {len(prefix)} frames")
    return scenes


def _safe_load(frame: FrameFile) -> Optional[np.ndarray]:
    try:
        image = load_downsampled(frame.path)
    except cv2.error as e:
        logger.warning(f"Could not decode {frame.filename} for scene detection: {e}")
        return None
    if image is None:
        logger.warning(f"Could not decode {frame.filename} for scene detection")
    return image
