"""
Тесты загрузки конфигурации анализа.
"""

import logging
import sys
from pathlib import Path

import pytest
import yaml

# Добавляем путь к модулям
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / '03_src'))

from utils.config import (  # noqa: E402
    MODEL_NAMES,
    AnalysisConfig,
    config_from_dict,
    load_config,
    save_config_snapshot,
)
from utils.logging_utils import get_logger, set_log_level  # noqa: E402


def test_defaults_match_analysis_parameters():
    cfg = AnalysisConfig()

    assert cfg.filtering.column_pattern == "belt|arm|dumbbell|forearm"
    assert cfg.filtering.min_non_missing == 0.9
    assert cfg.selection.max_pvalue == 0.05
    assert cfg.selection.min_abs_correlation == 0.05
    assert cfg.test_size == 0.25
    assert cfg.n_splits == 10
    assert cfg.random_state == 12345
    assert cfg.parallel.reserve_cores == 1
    assert cfg.dataset.outcome == "classe"
    assert cfg.enabled_models() == list(MODEL_NAMES)


def test_repository_config_loads():
    cfg = load_config()

    assert cfg.experiment_id == "exp_0001"
    assert cfg.enabled_models() == ["random_forest", "gradient_boosting", "bagged_cart"]
    assert cfg.models["random_forest"]["params"]["n_estimators"] == 250
    assert cfg.dataset.na_values == ["NA", "", "#DIV/0!"]
    assert cfg.artifact_enabled("save_models")


def test_partial_dict_falls_back_to_defaults():
    cfg = config_from_dict({"cv": {"n_splits": 5}, "models": {"bagged_cart": {"enabled": True}}})

    assert cfg.n_splits == 5
    assert cfg.test_size == 0.25
    assert cfg.enabled_models() == ["bagged_cart"]
    # Неуказанный артефакт считается включённым
    assert cfg.artifact_enabled("save_cv_indices")


def test_disabled_model_and_artifact():
    cfg = config_from_dict({
        "models": {"random_forest": {"enabled": False}, "bagged_cart": {"enabled": True}},
        "artifacts": {"save_models": False},
    })
    assert cfg.enabled_models() == ["bagged_cart"]
    assert not cfg.artifact_enabled("save_models")


def test_unknown_model_rejected():
    with pytest.raises(ValueError):
        config_from_dict({"models": {"xgboost": {"enabled": True}}})


def test_missing_explicit_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yml"))


def test_snapshot_roundtrip(tmp_path):
    cfg = AnalysisConfig(n_splits=4)
    path = tmp_path / "snapshot" / "config.yml"
    save_config_snapshot(cfg, path)

    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    assert raw["n_splits"] == 4
    assert raw["filtering"]["min_non_missing"] == 0.9


def test_log_level_applies_to_component_loggers():
    first = get_logger("ComponentA")
    second = get_logger("ComponentB", "DEBUG")
    try:
        set_log_level("warning")
        assert first.level == logging.WARNING
        assert second.level == logging.WARNING
        assert len(first.handlers) == 1
    finally:
        set_log_level("INFO")
