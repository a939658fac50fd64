import pytest

from app.services.script.normalizer import (
    accept_scene_text,
    coerce_to_scenes_shape,
    deep_find_scenes,
    expand_scenes_to_target,
    normalize_scenes,
    pick_text,
    resolve_title,
    validate_script_doc_loose,
)
from app.services.script.schemas import RawScene


def test_pick_text_aliases_in_order():
    assert pick_text({"narration": "n", "body": "b"}) == "n"
    assert pick_text({"dialogue": " d "}) == "d"
    assert pick_text({"lines": ["a", "", "b"]}) == "a b"
    assert pick_text({"summary": "s"}) == "s"
    assert pick_text("  plain ") == "plain"
    assert pick_text({"text": "", "content": "c"}) == "c"
    assert pick_text(42) == ""


@pytest.mark.parametrize(
    "parsed",
    [
        [{"text": "a"}, {"text": "b"}],
        {"title": "T", "scenes": [{"text": "a"}, {"text": "b"}]},
        {"title": "T", "result": {"scenes": [{"text": "a"}, {"text": "b"}]}},
        {"title": "T", "data": {"scenes": [{"content": "a"}, {"content": "b"}]}},
        {"title": "T", "payload": {"story": {"segments": [{"narration": "a"}, {"narration": "b"}]}}},
    ],
)
def test_shapes_normalize_to_the_same_scenes(parsed):
    title, scenes = normalize_scenes(parsed)
    assert [scene.text for scene in scenes] == ["a", "b"]
    assert [scene.scene_number for scene in scenes] == [1, 2]
    if isinstance(parsed, dict):
        assert title == "T"


def test_deep_search_survives_cycles():
    node = {"meta": {}}
    node["meta"]["parent"] = node
    assert deep_find_scenes(node) is None

    node["meta"]["chapters"] = [{"text": "found"}]
    assert deep_find_scenes(node) == [{"text": "found"}]


def test_scene_with_empty_text_fails_loose_validation():
    assert not validate_script_doc_loose({"scenes": [{"text": "a"}, {"duration": 3}]})
    assert not validate_script_doc_loose({"scenes": []})
    assert normalize_scenes({"scenes": [{"text": "a"}, {"text": ""}]}) is None
    assert normalize_scenes({"message": "no scenes here"}) is None
    assert coerce_to_scenes_shape(None) is None


def test_fields_are_extracted():
    _, scenes = normalize_scenes(
        {
            "scenes": [
                {"no": 2, "seconds": "12.6", "body": "둘째", "charCount": 2},
                {"scene_number": 1, "id": "intro", "duration": 30, "text": "첫째",
                 "visual_description": "도시 야경"},
            ]
        }
    )
    first, second = scenes
    assert (first.id, first.scene_number, first.text, first.duration) == ("intro", 1, "첫째", 30)
    assert first.visual_description == "도시 야경"
    assert (second.id, second.scene_number, second.duration) == ("s2", 2, 13)
    assert second.model_char_count == 2


def test_normalization_is_idempotent():
    parsed = {
        "result": {
            "title": "제목",
            "scenes": [
                {"scene_number": 3, "narration": "셋", "time": 20},
                {"scene_number": 1, "text": "하나", "duration": 10, "charCount": 99},
                "둘",
            ],
        }
    }
    title, scenes = normalize_scenes(parsed)
    serialized = {"title": title, "scenes": [scene.model_dump() for scene in scenes]}
    assert normalize_scenes(serialized) == (title, scenes)


def test_resolve_title_fallbacks():
    assert resolve_title({"title": " 제목 "}, "주제") == "제목"
    assert resolve_title({"title": ""}, "주제") == "주제"
    assert resolve_title(None, None) == "자동 생성 대본"


def test_expand_scenes_to_target_splits_long_scenes():
    long_text = " ".join(["문장입니다." for _ in range(200)])
    scenes = [
        RawScene(id="s1", scene_number=1, text=long_text, duration=60),
        RawScene(id="s2", scene_number=2, text="짧음", duration=10),
    ]
    expanded = expand_scenes_to_target(scenes, 4)
    assert len(expanded) == 4
    assert [scene.scene_number for scene in expanded] == [1, 2, 3, 4]
    assert expanded[-1].text == "짧음"
    assert "".join(scene.text for scene in expanded[:3]).replace(" ", "") == long_text.replace(" ", "")
    assert sum(scene.duration for scene in expanded[:3]) == 60


def test_expand_scenes_to_target_leaves_short_scenes():
    scenes = [RawScene(id="s1", scene_number=1, text="짧음")]
    assert expand_scenes_to_target(scenes, 3) == scenes


def test_accept_scene_text():
    assert accept_scene_text({"text": "본문", "charCount": 2}) == "본문"
    assert accept_scene_text([{"text": "본문"}]) == "본문"
    assert accept_scene_text({"charCount": 2}) is None
    assert accept_scene_text([1, 2]) is None


def test_repeated_splits_get_distinct_ids():
    long_text = " ".join(["문장입니다." for _ in range(400)])
    scenes = [RawScene(id="s1", scene_number=1, text=long_text, duration=120)]
    expanded = expand_scenes_to_target(scenes, 4)
    ids = [scene.id for scene in expanded]
    assert len(expanded) == 4
    assert len(set(ids)) == 4
    assert ids[0] == "s1"
