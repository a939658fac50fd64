import unicodedata

import pytest
from pydantic import ValidationError

from app.services.script.policy import calc_length_policy, estimate_max_tokens
from app.services.script.schemas import GenerateRequest
from app.services.script.text import count_chars, round_half_up, safe_excerpt


def test_count_chars_normalizes_and_strips_zero_width():
    decomposed = unicodedata.normalize("NFD", "한국어")
    assert len(decomposed) > 3
    assert count_chars(decomposed) == 3
    assert count_chars("\uac00\u200b\ub098\u200c\ub2e4\u200d\ub77c\ufeff") == 4
    assert count_chars("a b") == 3
    assert count_chars("") == 0
    assert count_chars(None) == 0


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2


def test_default_policy_for_five_minutes():
    policy = calc_length_policy(5, 1)
    assert policy.total_target_seconds == 300
    assert policy.target_cpm == 350
    assert policy.total_min == 1500
    assert policy.total_max == 2000
    assert policy.total_target == 1750
    assert policy.hard_cap_chars_per_scene == 1450


def test_bounds_for_sec():
    policy = calc_length_policy(5, 5)
    bounds = policy.bounds_for_sec(60)
    assert (bounds.min, bounds.max, bounds.target) == (300, 400, 350)

    # minimum is not clamped by the hard cap
    long_scene = policy.bounds_for_sec(300)
    assert long_scene.min == 1500
    assert long_scene.max == 1450
    assert long_scene.target == 1430

    tiny = policy.bounds_for_sec(0)
    assert (tiny.min, tiny.max, tiny.target) == (5, 7, 6)


def test_custom_cpm_range():
    policy = calc_length_policy(2, 4, cpm_min=200, cpm_max=300)
    assert policy.target_cpm == 250
    assert policy.total_min == 400
    assert policy.total_max == 600
    assert policy.bounds_for_sec(30).min == 100


def test_estimate_max_tokens_is_clamped():
    assert estimate_max_tokens(calc_length_policy(5, 1)) == 6000
    assert estimate_max_tokens(calc_length_policy(20, 10)) == 8000


def test_safe_excerpt_keeps_head_and_tail():
    text = "가" * 1000 + "나" * 1000
    excerpt = safe_excerpt(text, 1000)
    assert excerpt.startswith("가" * 700)
    assert excerpt.endswith("나" * 200)
    assert "..." in excerpt
    assert safe_excerpt("짧은 글", 1000) == "짧은 글"


def test_policy_rejects_inverted_range_and_empty_duration():
    with pytest.raises(ValueError):
        calc_length_policy(5, cpm_min=500)
    with pytest.raises(ValueError):
        calc_length_policy(0.005)
    assert calc_length_policy(0.01).total_target_seconds == 1


@pytest.mark.parametrize(
    "fields",
    [
        {"cpm_min": 500},
        {"cpm_max": 200},
        {"cpm_min": 500, "cpm_max": 300},
        {"duration_minutes": 0.005},
    ],
)
def test_request_rejects_unusable_length_settings(fields):
    with pytest.raises(ValidationError):
        GenerateRequest(**{"topic": "x", "duration_minutes": 5, **fields})


def test_request_accepts_one_sided_cpm_within_defaults():
    request = GenerateRequest(topic="x", duration_minutes=5, cpm_min=350)
    policy = calc_length_policy(request.duration_minutes, cpm_min=request.cpm_min)
    assert policy.min_cpm <= policy.max_cpm
