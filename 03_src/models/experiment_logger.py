"""
Журнал запусков: одна строка experiments.csv на каждый прогон анализа.

Фиксирует выбранную модель, её метрики, схему валидации и ответы quiz-выборки,
чтобы прогоны с разными настройками можно было сравнить в одной таблице.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

COLUMNS = [
    "ID", "Date", "Dataset", "N features", "Model", "Params", "Validation", "Seed",
    "CV Acc", "CV Acc SD", "Test Acc", "Kappa", "OOS Error", "N train", "N test",
    "Quiz predictions",
]

# Колонка журнала -> ключ в ModelResult.summary()
METRIC_COLUMNS = {
    "CV Acc": "cv_accuracy_mean",
    "CV Acc SD": "cv_accuracy_sd",
    "Test Acc": "test_accuracy",
    "Kappa": "kappa",
    "OOS Error": "oos_error",
}


def _round3(x: Optional[float]) -> Optional[float]:
    if x is None or not np.isfinite(x):
        return None
    return round(float(x), 3)


def _validation_label(split_meta: Dict) -> str:
    """Например: cv_k=10_holdout=0.25"""
    n_splits = (split_meta.get("cv") or {}).get("n_splits")
    label = f"cv_k={n_splits}" if n_splits else "cv"
    return f"{label}_holdout={split_meta.get('test_size')}"


def append_experiment_record(
    experiments_csv_path: Path,
    experiment_id: str,
    comparison: pd.DataFrame,
    dataset_name: str,
    n_features: int,
    split_meta: Dict,
    seed: int,
    model_name: Optional[str] = None,
    params_str: Optional[str] = None,
    quiz_predictions: Optional[pd.Series] = None,
) -> Dict[str, Any]:
    """
    Добавляет запись запуска в experiments.csv и возвращает её.

    Args:
        experiments_csv_path: Путь к файлу experiments.csv
        experiment_id: ID запуска (например, "exp_0001")
        comparison: Таблица сравнения моделей, индекс: имя модели
        dataset_name: Имя датасета из конфигурации
        n_features: Число отобранных признаков
        split_meta: Метаданные разбиения (split_info.yml)
        seed: Random seed
        model_name: Модель для записи; по умолчанию лучшая по test_accuracy
        params_str: Строка параметров модели
        quiz_predictions: Предсказания для quiz-выборки
    """
    if model_name is None and not comparison.empty:
        model_name = comparison["test_accuracy"].idxmax()
    metrics = comparison.loc[model_name].to_dict() if model_name in comparison.index else {}

    record: Dict[str, Any] = {
        "ID": experiment_id,
        "Date": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "Dataset": dataset_name,
        "N features": int(n_features),
        "Model": model_name or "",
        "Params": params_str or "",
        "Validation": _validation_label(split_meta),
        "Seed": seed,
        "N train": split_meta.get("n_train"),
        "N test": split_meta.get("n_test"),
        "Quiz predictions": "" if quiz_predictions is None else " ".join(map(str, quiz_predictions)),
    }
    for column, key in METRIC_COLUMNS.items():
        record[column] = _round3(metrics.get(key))

    path = Path(experiments_csv_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    new_row = pd.DataFrame([record], columns=COLUMNS)
    if path.exists():
        # Старые журналы могли быть без части колонок
        log = pd.read_csv(path).reindex(columns=COLUMNS)
        log = pd.concat([log, new_row], ignore_index=True)
    else:
        log = new_row
    log.to_csv(path, index=False)

    print(f"📝 Experiment record added to: {path}")
    return record
