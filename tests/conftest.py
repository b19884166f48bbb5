import os
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from frame_worker.config import WorkerConfig
from frame_worker.models import FrameFile
from frame_worker.pipeline.util import FRAME_PATTERN
from frame_worker.sessions import SessionStore


def checkerboard(size: int = 16, value: int = 255) -> np.ndarray:
    """Sharp test image: alternating 0/value pixels"""
    board = (np.indices((size, size)).sum(axis=0) % 2) * value
    return np.stack([board] * 3, axis=-1).astype(np.uint8)


def flat(size: int = 16, value: int = 128) -> np.ndarray:
    """Blurry test image: a single flat color"""
    return np.full((size, size, 3), value, dtype=np.uint8)


def write_image(path, pixels: np.ndarray) -> str:
    Image.fromarray(pixels).save(str(path))
    return str(path)


def make_frames(directory, count: int, blurry=(), images=None) -> list:
    """Write `count` transcoder-style frames (1-based numbering) into directory"""
    os.makedirs(directory, exist_ok=True)
    frames = []
    for i in range(count):
        index = i + 1
        path = os.path.join(str(directory), FRAME_PATTERN % index)
        if images is not None:
            pixels = images[i]
        elif i in blurry:
            pixels = flat()
        else:
            pixels = checkerboard()
        write_image(path, pixels)
        frames.append(FrameFile(index=index, path=path))
    return frames


@pytest.fixture
def config(tmp_path: Path) -> WorkerConfig:
    return WorkerConfig(DATA_DIR=str(tmp_path / "data"))


@pytest.fixture
def store(config: WorkerConfig) -> SessionStore:
    return SessionStore(config)
