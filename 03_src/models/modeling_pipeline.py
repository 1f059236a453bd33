from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import joblib
import numpy as np
import pandas as pd
import yaml
from sklearn.base import BaseEstimator, clone
from sklearn.ensemble import BaggingClassifier, GradientBoostingClassifier, RandomForestClassifier
from sklearn.metrics import (
    accuracy_score,
    balanced_accuracy_score,
    classification_report,
    cohen_kappa_score,
    confusion_matrix,
    f1_score,
)
from sklearn.model_selection import StratifiedKFold, cross_validate, train_test_split
from sklearn.tree import DecisionTreeClassifier

from utils.config import AnalysisConfig
from utils.logging_utils import get_logger

from .parallel_backend import WorkerPool

logger = get_logger("Modeling")

Fold = Tuple[np.ndarray, np.ndarray]


@dataclass
class ModelResult:
    name: str
    model: Any
    cv_accuracy: List[float]
    test_accuracy: float
    kappa: float
    test_metrics: Dict[str, float]
    confusion_matrix: pd.DataFrame
    classification_report: Dict[str, Any]
    test_index: pd.Index
    predictions: pd.Series
    fit_seconds: float

    @property
    def cv_mean(self) -> float:
        return float(np.mean(self.cv_accuracy))

    @property
    def cv_std(self) -> float:
        return float(np.std(self.cv_accuracy, ddof=1)) if len(self.cv_accuracy) > 1 else 0.0

    @property
    def oos_error(self) -> float:
        return 1.0 - self.test_accuracy

    def summary(self) -> Dict[str, float]:
        return {
            "cv_accuracy_mean": self.cv_mean,
            "cv_accuracy_sd": self.cv_std,
            "test_accuracy": self.test_accuracy,
            "kappa": self.kappa,
            "oos_error": self.oos_error,
            "fit_seconds": self.fit_seconds,
        }

    def to_record(self) -> Dict[str, Any]:
        return {
            "cv_folds": [float(a) for a in self.cv_accuracy],
            "cv_avg": {"accuracy": self.cv_mean, "accuracy_sd": self.cv_std},
            "test_metrics": {**self.test_metrics, "oos_error": self.oos_error},
            "test_details": {
                "labels": [str(c) for c in self.confusion_matrix.columns],
                "confusion_matrix": self.confusion_matrix.to_numpy().tolist(),
                "classification_report": self.classification_report,
                "n_test": int(len(self.test_index)),
            },
            "fit_seconds": self.fit_seconds,
        }


@dataclass
class ModelingRun:
    results: Dict[str, ModelResult]
    best_model: str
    X_train: pd.DataFrame
    y_train: pd.Series
    X_test: pd.DataFrame
    y_test: pd.Series
    folds: List[Fold]
    split_meta: Dict[str, Any] = field(default_factory=dict)

    def comparison_table(self) -> pd.DataFrame:
        rows = [{"Model": name, **res.summary()} for name, res in self.results.items()]
        return pd.DataFrame(rows).set_index("Model")

    def cv_accuracy_table(self) -> pd.DataFrame:
        """Точность по фолдам: строка на фолд, колонка на модель."""
        return pd.DataFrame(
            {name: res.cv_accuracy for name, res in self.results.items()},
            index=pd.RangeIndex(1, len(self.folds) + 1, name="fold"),
        )


def _validate_features(df: pd.DataFrame, outcome: str) -> Tuple[pd.DataFrame, pd.Series]:
    if outcome not in df.columns:
        raise ValueError(f"В датасете отсутствует целевая колонка '{outcome}'")

    X = df.drop(columns=[outcome]).astype(float)
    y = df[outcome]

    # Убираем строки с NaN/inf по X или y
    mask = (~X.isna().any(axis=1)) & (~np.isinf(X).any(axis=1)) & y.notna()
    n_dropped = int((~mask).sum())
    if n_dropped:
        logger.warning(f"Dropped {n_dropped} incomplete rows before partitioning")
    X = X.loc[mask]
    y = y.loc[mask].astype(str)

    if y.nunique() < 2:
        raise ValueError(f"Для классификации нужно минимум два класса, найдено: {sorted(y.unique())}")
    return X, y


def split_train_test(
    X: pd.DataFrame, y: pd.Series, test_size: float = 0.25, random_state: int = 12345
) -> Tuple[Tuple[pd.DataFrame, pd.Series], Tuple[pd.DataFrame, pd.Series]]:
    """Стратифицированное случайное разбиение на train/test (по умолчанию 75/25)."""
    if not 0.0 < test_size < 1.0:
        raise ValueError(f"Доля теста должна быть в (0, 1): {test_size}")
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=test_size, stratify=y, random_state=random_state
    )
    return (X_train, y_train), (X_test, y_test)


def make_cv_folds(X: pd.DataFrame, y: pd.Series, n_splits: int = 10, random_state: int = 12345) -> List[Fold]:
    """Позиционные индексы фолдов; один и тот же список передаётся во все модели."""
    skf = StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    return [(tr, va) for tr, va in skf.split(X, y)]


def _save_cv_indices(folds: List[Fold], path: Path, index: pd.Index) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = []
    for train_idx, valid_idx in folds:
        data.append(
            {
                "train": [str(index[i]) for i in train_idx],
                "valid": [str(index[i]) for i in valid_idx],
            }
        )
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def build_estimator(name: str, params: Optional[Dict[str, Any]] = None, random_state: int = 12345) -> BaseEstimator:
    params = dict(params or {})
    params.setdefault("random_state", random_state)

    if name == "random_forest":
        return RandomForestClassifier(**params)

    if name == "gradient_boosting":
        # Стохастический бустинг: каждая стадия обучается на подвыборке
        params.setdefault("subsample", 0.8)
        return GradientBoostingClassifier(**params)

    if name == "bagged_cart":
        tree_params = dict(params.pop("tree_params", None) or {})
        tree_params.setdefault("random_state", params["random_state"])
        return BaggingClassifier(estimator=DecisionTreeClassifier(**tree_params), **params)

    raise ValueError(f"Неизвестная модель: {name}")


def _evaluate(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    return {
        "accuracy": float(accuracy_score(y_true, y_pred)),
        "balanced_accuracy": float(balanced_accuracy_score(y_true, y_pred)),
        "kappa": float(cohen_kappa_score(y_true, y_pred)),
        "f1_macro": float(f1_score(y_true, y_pred, average="macro")),
    }


def _confusion_and_report(y_true: np.ndarray, y_pred: np.ndarray, labels: Sequence[str]) -> Tuple[pd.DataFrame, Dict]:
    cm = confusion_matrix(y_true, y_pred, labels=list(labels))
    cm_df = pd.DataFrame(
        cm,
        index=pd.Index(labels, name="Reference"),
        columns=pd.Index(labels, name="Prediction"),
    )
    report = classification_report(y_true, y_pred, labels=list(labels), digits=4, output_dict=True, zero_division=0)
    return cm_df, report


def fit_and_evaluate(
    name: str,
    estimator: BaseEstimator,
    X_train: pd.DataFrame,
    y_train: pd.Series,
    X_test: pd.DataFrame,
    y_test: pd.Series,
    folds: List[Fold],
) -> ModelResult:
    """K-fold CV на train, финальное обучение на всём train и оценка только на test."""
    start = time.perf_counter()
    cv = cross_validate(
        clone(estimator),
        X_train,
        y_train,
        cv=folds,
        scoring="accuracy",
        error_score="raise",
    )
    cv_accuracy = [float(s) for s in cv["test_score"]]

    model = clone(estimator).fit(X_train, y_train)
    fit_seconds = time.perf_counter() - start

    y_pred = pd.Series(model.predict(X_test), index=X_test.index, name="prediction")
    labels = sorted(pd.unique(pd.concat([y_train, y_test])).tolist())
    metrics = _evaluate(y_test.values, y_pred.values)
    cm_df, report = _confusion_and_report(y_test.values, y_pred.values, labels)

    logger.info(
        f"{name}: cv_accuracy={np.mean(cv_accuracy):.4f} test_accuracy={metrics['accuracy']:.4f} "
        f"({fit_seconds:.1f}s)"
    )
    return ModelResult(
        name=name,
        model=model,
        cv_accuracy=cv_accuracy,
        test_accuracy=metrics["accuracy"],
        kappa=metrics["kappa"],
        test_metrics=metrics,
        confusion_matrix=cm_df,
        classification_report=report,
        test_index=X_test.index,
        predictions=y_pred,
        fit_seconds=float(fit_seconds),
    )


def select_best_model(results: Dict[str, ModelResult]) -> str:
    """Лучшая модель по точности на test; при равенстве по средней CV-точности, затем по порядку."""
    if not results:
        raise ValueError("Нет обученных моделей для сравнения")
    order = list(results.keys())
    return max(order, key=lambda n: (results[n].test_accuracy, results[n].cv_mean, -order.index(n)))


def run_modeling_pipeline(
    selected_table: pd.DataFrame,
    config: Optional[AnalysisConfig] = None,
    save_dir: Optional[Path] = None,
    models_to_run: Optional[List[str]] = None,
    pool: Optional[WorkerPool] = None,
) -> ModelingRun:
    """Полный цикл моделирования и оценки.

    1) Валидация таблицы отобранных признаков
    2) Стратифицированное разбиение train/test (75/25)
    3) Генерация фолдов StratifiedKFold на train (общие для всех моделей)
    4) Обучение RandomForest / GradientBoosting / Bagged CART с CV
    5) Оценка на test: accuracy, kappa, confusion matrix
    6) Остановка пула воркеров
    7) Сохранение артефактов
    """
    cfg = config or AnalysisConfig()
    outcome = cfg.dataset.outcome

    X, y = _validate_features(selected_table, outcome)
    (X_train, y_train), (X_test, y_test) = split_train_test(X, y, cfg.test_size, cfg.random_state)
    folds = make_cv_folds(X_train, y_train, cfg.n_splits, cfg.random_state)
    split_meta = {
        "method": "stratified_random",
        "test_size": cfg.test_size,
        "random_state": cfg.random_state,
        "n_total": int(len(X)),
        "n_train": int(len(X_train)),
        "n_test": int(len(X_test)),
        "n_dropped": int(len(selected_table) - len(X)),
        "cv": {"method": "stratified_kfold", "n_splits": cfg.n_splits, "shuffle": True},
    }
    logger.info(f"Partition: train={len(X_train)} test={len(X_test)}, {cfg.n_splits}-fold CV")

    models = cfg.enabled_models() if models_to_run is None else list(models_to_run)
    if not models:
        raise ValueError("Не выбрано ни одной модели для обучения")

    own_pool = pool is None
    if own_pool:
        pool = WorkerPool(n_jobs=cfg.parallel.n_jobs, backend=cfg.parallel.backend, reserve_cores=cfg.parallel.reserve_cores)
    results: Dict[str, ModelResult] = {}
    try:
        pool.start()
        for model_name in models:
            model_cfg = cfg.models.get(model_name) or {}
            estimator = build_estimator(model_name, model_cfg.get("params"), cfg.random_state)
            results[model_name] = fit_and_evaluate(model_name, estimator, X_train, y_train, X_test, y_test, folds)
    finally:
        if own_pool:
            pool.stop()

    best = select_best_model(results)
    logger.info(f"Best model: {best} (test accuracy {results[best].test_accuracy:.4f})")

    run = ModelingRun(
        results=results,
        best_model=best,
        X_train=X_train,
        y_train=y_train,
        X_test=X_test,
        y_test=y_test,
        folds=folds,
        split_meta=split_meta,
    )
    if save_dir is not None:
        _save_artifacts(run, Path(save_dir), cfg)
    return run


def _save_artifacts(run: ModelingRun, save_dir: Path, cfg: AnalysisConfig) -> None:
    save_dir.mkdir(parents=True, exist_ok=True)

    if cfg.artifact_enabled("save_cv_indices"):
        _save_cv_indices(run.folds, save_dir / "cv_indices.json", run.X_train.index)
    with open(save_dir / "split_info.yml", "w", encoding="utf-8") as f:
        yaml.safe_dump(run.split_meta, f, allow_unicode=True, sort_keys=False)

    if cfg.artifact_enabled("save_models"):
        for name, res in run.results.items():
            model_dir = save_dir / name
            model_dir.mkdir(parents=True, exist_ok=True)
            joblib.dump(res.model, model_dir / "model.joblib")

    payload = {name: res.to_record() for name, res in run.results.items()}
    payload["best_model"] = run.best_model
    with open(save_dir / "modeling_results.json", "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
