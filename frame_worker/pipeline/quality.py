import os
import logging
from typing import List, Tuple

from PIL import Image, ImageStat

from ..models import FrameAnalysis, FrameFile

logger = logging.getLogger("frame_worker")


QUALITY_SCALE = 2.0
DEFAULT_QUALITY = 50
BLUR_THRESHOLD = 30


def sharpness(image_path: str) -> float:
    """Mean of the per-channel pixel standard deviations, alpha excluded"""
    with Image.open(image_path) as img:
        img = img.convert('L') if img.mode in ('1', 'L', 'LA', 'I', 'I;16', 'F') else img.convert('RGB')
        stddev = ImageStat.Stat(img).stddev
    return sum(stddev) / len(stddev)


def quality_from_sharpness(value: float) -> int:
    """Map a sharpness value onto 0-100, saturating at 100"""
    return max(0, min(100, int(round(value * QUALITY_SCALE))))


def score_frame(image_path: str, blur_threshold: int = BLUR_THRESHOLD) -> Tuple[int, bool]:
    """
    Score one frame

    Returns:
        (quality, is_blurry). Unreadable images score DEFAULT_QUALITY and are not blurry.
    """
    try:
        quality = quality_from_sharpness(sharpness(image_path))
    except Exception as e:
        logger.warning(f"Quality scoring failed for {image_path}, using default: {e}")
        return DEFAULT_QUALITY, False

    return quality, quality < blur_threshold


def score_frames(frames: List[FrameFile], limit: int = 100,
                 blur_threshold: int = BLUR_THRESHOLD) -> List[FrameAnalysis]:
    """Score the first `limit` frames in extraction order"""
    analysis = []

    for frame in frames[:limit]:
        quality, is_blurry = score_frame(frame.path, blur_threshold)
        analysis.append(FrameAnalysis(
            filename=frame.filename,
            quality=quality,
            is_blurry=is_blurry
        ))

    blurry = sum(1 for record in analysis if record.is_blurry)
    logger.info(f"QUALITY: Scored {len(analysis)}/{len(frames)} frames, {blurry} blurry")
    return analysis


def remove_blurry_frames(frames: List[FrameFile],
                         analysis: List[FrameAnalysis]) -> Tuple[List[FrameFile], List[FrameAnalysis]]:
    """
    Delete frames scored as blurry from disk and from both lists

    Unscored frames are kept. Order is preserved.
    """
    blurry = {record.filename for record in analysis if record.is_blurry}
    if not blurry:
        return list(frames), list(analysis)

    kept = []
    for frame in frames:
        if frame.filename in blurry:
            try:
                os.remove(frame.path)
            except FileNotFoundError:
                pass
            logger.debug(f"Removed blurry frame {frame.filename}")
        else:
            kept.append(frame)

    kept_analysis = [record for record in analysis if not record.is_blurry]

    logger.info(f"BLUR: Removed {len(frames) - len(kept)} blurry frames, {len(kept)} remain")
    return kept, kept_analysis
