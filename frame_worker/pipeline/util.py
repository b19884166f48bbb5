import os
import re
import shutil
import logging
from typing import List

logger = logging.getLogger("frame_worker")


FRAME_PREFIX = "frame_"
FRAME_EXTENSION = ".png"
FRAME_PATTERN = f"{FRAME_PREFIX}%05d{FRAME_EXTENSION}"

_FRAME_NAME_RE = re.compile(rf"^{FRAME_PREFIX}(\d+){re.escape(FRAME_EXTENSION)}$")


def ensure_dir(path: str):
    """Ensure directory exists"""
    os.makedirs(path, exist_ok=True)


def remove_path(path: str) -> bool:
    """Remove a file or directory tree; returns False when nothing was there"""
    if not path or not os.path.lexists(path):
        return False
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    else:
        os.remove(path)
    return True


def frame_index(filename: str) -> int:
    """Parse the sequence number out of a transcoder output filename, -1 if foreign"""
    match = _FRAME_NAME_RE.match(filename)
    if not match:
        return -1
    return int(match.group(1))


def list_frame_files(directory: str) -> List[str]:
    """List extracted frame filenames in extraction order"""
    names = [name for name in os.listdir(directory) if frame_index(name) >= 0]
    names.sort(key=frame_index)
    return names


def clean_filename(filename: str) -> str:
    """Clean filename for safe filesystem usage"""
    # Strip any directory component supplied by the client
    filename = os.path.basename(filename.replace('\\', '/'))
    # Remove or replace unsafe characters
    filename = re.sub(r'[<>:"/\\|?*\x00-\x1f]', '_', filename)
    # Remove multiple underscores
    filename = re.sub(r'_+', '_', filename)
    # Remove leading/trailing underscores and dots
    filename = filename.strip('_.')
    return filename or 'unnamed'
