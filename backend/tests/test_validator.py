from app.services.script.allocator import format_scenes
from app.services.script.policy import calc_length_policy
from app.services.script.schemas import RawScene
from app.services.script.validator import rank_violations, severity, validate_policy


def _document(texts_and_durations, total):
    scenes = [
        RawScene(id=f"s{i}", scene_number=i, text=text, duration=duration)
        for i, (text, duration) in enumerate(texts_and_durations, start=1)
    ]
    return format_scenes("제목", scenes, total)


def test_conforming_document_passes():
    policy = calc_length_policy(1, 2)
    document = _document([("가" * 175, 30), ("나" * 175, 30)], 60)
    report = validate_policy(document, policy)
    assert not report.violated
    assert report.total_chars == 350
    assert rank_violations(document, policy) == []


def test_single_short_scene_is_strict_failure():
    policy = calc_length_policy(5, 1)
    document = _document([("가" * 50, 300)], 300)
    report = validate_policy(document, policy)
    assert report.violated
    assert report.strict_fail
    assert report.total_bad


def test_soft_ratio_violation_without_strict_failure():
    policy = calc_length_policy(1, 2)
    # 30s scene: min 150, max 200; 230 chars is beyond max * 1.1 but total stays in range
    document = _document([("가" * 230, 30), ("나" * 160, 30)], 60)
    report = validate_policy(document, policy)
    assert not report.strict_fail
    assert not report.total_bad
    assert report.soft_out_ratio == 0.5
    assert report.violated


def test_violations_are_ranked_by_gap():
    policy = calc_length_policy(2, 3)
    document = _document([("가" * 140, 40), ("나" * 20, 40), ("다" * 400, 40)], 120)
    ranked = rank_violations(document, policy)
    # 40s scene: min 200, max 267, overflow threshold round(267 * 1.05) = 280
    assert [v.index for v in ranked] == [1, 2, 0]
    assert [v.gap for v in ranked] == [180, 120, 60]
    assert ranked[0].needs_expand
    assert not ranked[1].needs_expand


def test_severity_orders_documents():
    policy = calc_length_policy(1, 1)
    bad = _document([("가" * 10, 60)], 60)
    better = _document([("가" * 250, 60)], 60)
    good = _document([("가" * 350, 60)], 60)
    assert severity(good, policy) < severity(better, policy) < severity(bad, policy)
