from frame_worker.models import FrameFile
from frame_worker.pipeline.scenes import detect_scenes

from conftest import flat, make_frames


def test_single_scene_for_identical_frames(tmp_path):
    frames = make_frames(tmp_path, 5)
    scenes = detect_scenes(frames)

    assert len(scenes) == 1
    assert scenes[0].idx == 0
    assert scenes[0].start_frame == 0
    assert scenes[0].frames == [frame.filename for frame in frames[1:]]


def test_new_scene_on_large_change(tmp_path):
    images = [flat(value=0)] * 3 + [flat(value=255)] * 2 + [flat(value=240)]
    frames = make_frames(tmp_path, 6, images=images)

    scenes = detect_scenes(frames, threshold=30)

    assert [scene.idx for scene in scenes] == [0, 1]
    assert [scene.start_frame for scene in scenes] == [0, 3]
    assert scenes[1].frames == [frame.filename for frame in frames[3:]]


def test_scenes_partition_prefix_in_order(tmp_path):
    images = [flat(value=v) for v in (0, 10, 200, 205, 50, 60, 250)]
    frames = make_frames(tmp_path, 7, images=images)

    scenes = detect_scenes(frames)
    combined = [name for scene in scenes for name in scene.frames]

    assert combined == [frame.filename for frame in frames[1:]]
    assert len(combined) == len(set(combined))
    assert [scene.idx for scene in scenes] == list(range(len(scenes)))


def test_scene_detection_capped(tmp_path):
    images = [flat(value=0 if i % 2 else 255) for i in range(8)]
    frames = make_frames(tmp_path, 8, images=images)

    scenes = detect_scenes(frames, limit=4)
    combined = [name for scene in scenes for name in scene.frames]

    assert combined == [frame.filename for frame in frames[1:4]]
    assert len(scenes) == 4


def test_unreadable_frame_means_no_change(tmp_path):
    frames = make_frames(tmp_path, 3, images=[flat(value=0), flat(value=0), flat(value=255)])
    broken = tmp_path / "frame_00099.png"
    broken.write_bytes(b"garbage")
    sequence = frames[:2] + [FrameFile(index=99, path=str(broken))] + frames[2:]

    scenes = detect_scenes(sequence)

    # The corrupt frame joins scene 0 and the pair after it is not compared
    assert len(scenes) == 1
    assert scenes[0].frames[1] == "frame_00099.png"


def test_empty_sequence():
    assert detect_scenes([]) == []


def test_first_frame_seeds_scene_zero(tmp_path):
    frames = make_frames(tmp_path, 4, images=[flat(value=v) for v in (0, 10, 200, 205)])

    scenes = detect_scenes(frames)
    combined = [name for scene in scenes for name in scene.frames]

    assert combined == ["frame_00002.png", "frame_00003.png", "frame_00004.png"]
    assert scenes[0].start_frame == 0
    assert scenes[0].frames == ["frame_00002.png"]
    assert scenes[1].start_frame == 2


def test_single_frame_is_empty_scene_zero(tmp_path):
    frames = make_frames(tmp_path, 1)
    scenes = detect_scenes(frames)

    assert len(scenes) == 1
    assert scenes[0].start_frame == 0
    assert scenes[0].frames == []
