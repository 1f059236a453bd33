"""Применение выбранной модели к quiz-выборке (20 наблюдений без меток)."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from utils.logging_utils import get_logger

logger = get_logger("QuizPrediction")


def predict_quiz(model, quiz_table: pd.DataFrame, save_path: Optional[Path] = None) -> pd.Series:
    """Предсказанные метки, индексированные problem_id.

    Колонки quiz_table должны совпадать с колонками, на которых обучалась модель.
    """
    expected = getattr(model, "feature_names_in_", None)
    if expected is not None:
        missing = [c for c in expected if c not in quiz_table.columns]
        if missing:
            raise KeyError(f"В quiz-таблице отсутствуют признаки модели: {missing}")
        quiz_table = quiz_table[list(expected)]

    predictions = pd.Series(model.predict(quiz_table.astype(float)), index=quiz_table.index, name="prediction")
    logger.info(f"Quiz predictions: {' '.join(str(p) for p in predictions)}")

    if save_path is not None:
        save_path = Path(save_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        predictions.to_frame().to_csv(save_path)
    return predictions
