"""Модуль моделирования: обучение и валидация моделей.

Содержит пул воркеров joblib, стратифицированное разбиение, k-fold CV
и обучение моделей (RandomForest / GradientBoosting / Bagged CART),
а также предсказания для quiz-выборки.
"""

from .modeling_pipeline import ModelResult, ModelingRun, run_modeling_pipeline  # noqa: F401
from .parallel_backend import WorkerPool  # noqa: F401
from .quiz_prediction import predict_quiz  # noqa: F401
