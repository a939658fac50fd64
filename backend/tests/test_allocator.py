import pytest

from app.services.script.allocator import (
    allocate_durations,
    assign_timeline,
    format_scenes,
)
from app.services.script.schemas import RawScene


def _raw(n, durations=None):
    durations = durations or [None] * n
    return [
        RawScene(id=f"s{i}", scene_number=i, text=f"장면 {i}", duration=d)
        for i, d in enumerate(durations, start=1)
    ]


def test_even_split_gives_remainder_to_last_scene():
    assert allocate_durations([None] * 7, 300) == [42, 42, 42, 42, 42, 42, 48]


def test_rescale_280_to_300():
    durations = allocate_durations([40] * 7, 300)
    assert sum(durations) == 300
    assert durations[:-1] == [43] * 6
    assert durations[-1] == 42


def test_missing_durations_use_even_fallback():
    durations = allocate_durations([100, None, 50], 300)
    assert sum(durations) == 300
    assert all(d >= 1 for d in durations)


def test_zero_and_negative_durations_are_ignored():
    assert allocate_durations([0, -5, None], 90) == [30, 30, 30]


@pytest.mark.parametrize(
    "model_durations,total",
    [
        ([2, 2, 2, 1], 6),
        ([1, 1, 1, 100], 4),
        ([500, 1, 1], 30),
        ([7, 3, 11, 5, 9], 1800),
        ([None, 3, None, 1], 61),
    ],
)
def test_sum_is_always_exact(model_durations, total):
    durations = allocate_durations(model_durations, total)
    assert sum(durations) == total
    assert all(d >= 1 for d in durations)


def test_more_scenes_than_seconds():
    durations = allocate_durations([5, 5, 5, 5], 3)
    assert sum(durations) == 3
    assert all(d >= 0 for d in durations)


def test_timeline_is_contiguous():
    spans = assign_timeline([10, 20, 30], 60)
    assert spans == [(0, 10), (10, 30), (30, 60)]


def test_format_scenes_invariants():
    scenes = _raw(5, [10, None, 70, 25, 3])
    document = format_scenes("제목", scenes, 301)

    assert document.scenes[0].start_sec == 0
    assert document.scenes[-1].end_sec == 301
    assert sum(scene.duration_sec for scene in document.scenes) == 301
    for prev, nxt in zip(document.scenes, document.scenes[1:]):
        assert prev.end_sec == nxt.start_sec
    assert [scene.scene_number for scene in document.scenes] == [1, 2, 3, 4, 5]
    assert all(scene.char_count == len(scene.text) for scene in document.scenes)
    assert document.total_seconds == 301


def test_format_scenes_ignores_model_char_count():
    scenes = [RawScene(id="s1", scene_number=1, text="네 글자다", model_char_count=500)]
    document = format_scenes("제목", scenes, 60)
    assert document.scenes[0].char_count == 5


def test_reformatting_keeps_durations():
    document = format_scenes("제목", _raw(3, [10, 20, 30]), 60)
    again = format_scenes(
        "제목",
        [
            RawScene(id=s.id, scene_number=s.scene_number, text=s.text, duration=s.duration_sec)
            for s in document.scenes
        ],
        60,
    )
    assert again == document
