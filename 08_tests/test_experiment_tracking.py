"""
Тесты журнала запусков и расчёта важности признаков.
"""

import json
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Добавляем путь к модулям
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / '03_src'))

from models.experiment_logger import COLUMNS, append_experiment_record  # noqa: E402
from models.feature_importance import ImportanceConfig, compute_feature_importance  # noqa: E402
from models.modeling_pipeline import build_estimator  # noqa: E402
from sensor_data import STRONG_FEATURES, SensorDataGenerator  # noqa: E402

SPLIT_META = {"test_size": 0.25, "n_train": 150, "n_test": 50, "cv": {"n_splits": 10}}


def _comparison():
    return pd.DataFrame(
        {
            "cv_accuracy_mean": [0.91234, 0.95],
            "cv_accuracy_sd": [0.01, 0.02],
            "test_accuracy": [0.9, 0.96],
            "kappa": [0.87, 0.95],
            "oos_error": [0.1, 0.04],
        },
        index=pd.Index(["random_forest", "bagged_cart"], name="Model"),
    )


class TestExperimentLogger:

    def test_new_log_picks_best_model(self, tmp_path):
        path = tmp_path / "experiments.csv"
        record = append_experiment_record(
            path, "exp_0001", _comparison(), "pml", n_features=12, split_meta=SPLIT_META, seed=12345,
            quiz_predictions=pd.Series(["B", "A", "B"]),
        )

        assert record["Model"] == "bagged_cart"
        assert record["Validation"] == "cv_k=10_holdout=0.25"
        assert record["OOS Error"] == 0.04

        log = pd.read_csv(path)
        assert list(log.columns) == COLUMNS
        assert log.loc[0, "Quiz predictions"] == "B A B"
        assert log.loc[0, "N train"] == 150

    def test_appends_and_rounds(self, tmp_path):
        path = tmp_path / "experiments.csv"
        for exp_id in ["exp_0001", "exp_0002"]:
            append_experiment_record(
                path, exp_id, _comparison(), "pml", n_features=12, split_meta=SPLIT_META, seed=1,
                model_name="random_forest",
            )

        log = pd.read_csv(path)
        assert log["ID"].tolist() == ["exp_0001", "exp_0002"]
        assert log["Model"].tolist() == ["random_forest", "random_forest"]
        assert log.loc[1, "CV Acc"] == pytest.approx(0.912)

    def test_legacy_log_gets_missing_columns(self, tmp_path):
        path = tmp_path / "experiments.csv"
        pd.DataFrame([{"ID": "exp_0000", "Model": "random_forest"}]).to_csv(path, index=False)

        append_experiment_record(path, "exp_0001", _comparison(), "pml", 12, SPLIT_META, 1)

        log = pd.read_csv(path)
        assert list(log.columns) == COLUMNS
        assert len(log) == 2
        assert np.isnan(log.loc[0, "Test Acc"])


@pytest.mark.parametrize("model_name", ["random_forest", "bagged_cart"])
def test_feature_importance_files(model_name, tmp_path):
    df = SensorDataGenerator.create_training_table(n_per_class=20)
    X = df[list(STRONG_FEATURES) + ["total_accel_forearm"]]
    y = df["classe"]
    model = build_estimator(model_name, {"n_estimators": 10}).fit(X, y)

    summary = compute_feature_importance(
        model_name, model, X, y, tmp_path, ImportanceConfig(n_repeats=2)
    )

    fi_dir = tmp_path / "feature_importance"
    for fname in ["raw_importances.csv", "summary_importances.csv", "fi_meta.json"]:
        assert (fi_dir / fname).exists(), fname

    assert set(summary.index) == set(X.columns)
    assert summary["avg_total"].is_monotonic_decreasing
    # Встроенная важность деревьев нормирована: сумма по признакам равна 1
    native = summary[f"native:{model_name}_native"]
    assert native.sum() == pytest.approx(1.0, abs=1e-6)

    meta = json.loads((fi_dir / "fi_meta.json").read_text(encoding="utf-8"))
    assert meta["model"] == model_name
    assert meta["n_repeats"] == 2
