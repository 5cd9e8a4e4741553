# test_config.py

import pytest
from pydantic import ValidationError

from config import DIFFICULTY_GUIDELINES, PipelineConfig, load_config


def test_config_is_immutable(config):
    with pytest.raises(ValidationError):
        config.max_chunk_size = 10


def test_load_config_applies_overrides_and_skips_none():
    cfg = load_config(openai_api_key="sk-x", max_chunk_size=500, min_success_ratio=None)
    assert cfg.openai_api_key == "sk-x"
    assert cfg.max_chunk_size == 500
    assert 0.0 <= cfg.min_success_ratio <= 1.0


@pytest.mark.parametrize("field,value", [
    ("failure_policy", "sometimes"),
    ("min_success_ratio", 1.5),
    ("max_chunk_size", 0),
])
def test_invalid_settings_are_rejected(field, value):
    with pytest.raises(ValidationError):
        PipelineConfig(**{field: value})


def test_point_ranges_step_up_with_difficulty():
    ranges = [(g.points.min, g.points.max) for g in DIFFICULTY_GUIDELINES.values()]
    assert ranges == [(1, 2), (2, 3), (3, 4), (4, 5)]
    assert PipelineConfig().guideline_for("university").points.max == 4
