import os

import numpy as np

from frame_worker.pipeline.quality import (
    DEFAULT_QUALITY, quality_from_sharpness, remove_blurry_frames, score_frame, score_frames
)

from conftest import checkerboard, flat, make_frames, write_image


def test_sharp_image_scores_high(tmp_path):
    path = write_image(tmp_path / "sharp.png", checkerboard())
    quality, is_blurry = score_frame(path)
    assert quality == 100
    assert not is_blurry


def test_flat_image_is_blurry(tmp_path):
    path = write_image(tmp_path / "flat.png", flat())
    quality, is_blurry = score_frame(path)
    assert quality == 0
    assert is_blurry


def test_linear_scale_saturates():
    assert quality_from_sharpness(0) == 0
    assert quality_from_sharpness(10) == 20
    assert quality_from_sharpness(14.9) == 30
    assert quality_from_sharpness(80) == 100


def test_grayscale_image(tmp_path):
    from PIL import Image
    pixels = (np.indices((16, 16)).sum(axis=0) % 2 * 40).astype(np.uint8)
    path = str(tmp_path / "gray.png")
    Image.fromarray(pixels).save(path)

    quality, _ = score_frame(path)
    assert quality == 40


def test_corrupt_image_gets_neutral_default(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image at all")

    assert score_frame(str(path)) == (DEFAULT_QUALITY, False)
    assert score_frame(str(tmp_path / "missing.png")) == (50, False)


def test_score_frames_caps_prefix(tmp_path):
    frames = make_frames(tmp_path, 8, blurry={2})
    analysis = score_frames(frames, limit=5)

    assert [record.filename for record in analysis] == [frame.filename for frame in frames[:5]]
    assert [record.is_blurry for record in analysis] == [False, False, True, False, False]
    assert all(record.is_keyframe is False for record in analysis)


def test_remove_blurry_frames(tmp_path):
    frames = make_frames(tmp_path, 10, blurry={3, 7})
    analysis = score_frames(frames, limit=100)

    kept, kept_analysis = remove_blurry_frames(frames, analysis)

    removed = {frames[3].filename, frames[7].filename}
    assert len(kept) == 8
    assert removed.isdisjoint(frame.filename for frame in kept)
    assert removed.isdisjoint(record.filename for record in kept_analysis)
    assert [frame.index for frame in kept] == sorted(frame.index for frame in kept)
    assert not os.path.exists(frames[3].path)
    assert not os.path.exists(frames[7].path)
    assert os.path.exists(frames[0].path)


def test_unscored_frames_survive_blur_removal(tmp_path):
    frames = make_frames(tmp_path, 6, blurry={1, 5})
    analysis = score_frames(frames, limit=3)

    kept, _ = remove_blurry_frames(frames, analysis)

    # Frame 5 is beyond the scored prefix
    assert [frame.filename for frame in kept] == [frames[i].filename for i in (0, 2, 3, 4, 5)]
