"""Загрузка сенсорных данных Weight Lifting Exercise и фильтрация колонок.

Исходные таблицы (pml-training.csv / pml-testing.csv) читаются напрямую по URL
или с локального пути. Пропуски в исходных CSV закодированы как `NA`, пустая строка
и `#DIV/0!` (агрегаты окна в строках без new_window).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from utils.logging_utils import get_logger

DEFAULT_NA_VALUES = ["NA", "", "#DIV/0!"]
ROW_INDEX_COLUMNS = {"", "X", "Unnamed: 0"}

logger = get_logger("DataIngestion")


@dataclass
class FilterReport:
    """Итог фильтрации колонок: что оставили и почему отбросили остальное."""

    kept: List[str]
    dropped_by_pattern: List[str]
    dropped_by_missingness: List[str]
    non_missing_fraction: Dict[str, float] = field(default_factory=dict)

    def as_frame(self) -> pd.DataFrame:
        rows = []
        for col in self.kept:
            rows.append({"column": col, "status": "kept", "non_missing": self.non_missing_fraction.get(col)})
        for col in self.dropped_by_missingness:
            rows.append({"column": col, "status": "sparse", "non_missing": self.non_missing_fraction.get(col)})
        for col in self.dropped_by_pattern:
            rows.append({"column": col, "status": "pattern", "non_missing": self.non_missing_fraction.get(col)})
        return pd.DataFrame(rows, columns=["column", "status", "non_missing"])


def _is_remote(source: str) -> bool:
    return bool(re.match(r"^(https?|ftp)://", str(source)))


def load_raw_table(source: Union[str, Path], na_values: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Читает CSV по URL или с диска.

    Ошибки сети и парсинга не перехватываются.
    """
    na = list(na_values) if na_values is not None else DEFAULT_NA_VALUES
    if not _is_remote(str(source)):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Не найден файл данных: {path}")
        source = str(path)

    logger.info(f"Loading data from: {source}")
    df = pd.read_csv(source, na_values=na, keep_default_na=True, low_memory=False)

    # Первая безымянная колонка: номер строки
    first = df.columns[0] if len(df.columns) else None
    if first is not None and (str(first) in ROW_INDEX_COLUMNS or str(first).startswith("Unnamed")):
        df = df.drop(columns=[first])

    logger.info(f"Data loaded. Shape: {df.shape}")
    return df


def non_missing_fraction(df: pd.DataFrame) -> pd.Series:
    """Доля непустых значений по каждой колонке."""
    if len(df) == 0:
        return pd.Series(0.0, index=df.columns, dtype=float)
    return df.notna().mean(axis=0).astype(float)


def filter_columns(
    df: pd.DataFrame,
    pattern: str = "belt|arm|dumbbell|forearm",
    outcome: str = "classe",
    min_non_missing: float = 0.9,
) -> Tuple[pd.DataFrame, FilterReport]:
    """Оставляет колонки датчиков с долей непустых значений строго выше порога.

    Колонка должна одновременно совпадать с регулярным выражением `pattern`
    и иметь non-missing > `min_non_missing`. Целевая колонка сохраняется всегда
    и ставится последней.
    """
    if outcome not in df.columns:
        raise KeyError(f"В датасете отсутствует целевая колонка '{outcome}'")
    if not 0.0 <= min_non_missing < 1.0:
        raise ValueError(f"Порог доли непустых значений должен быть в [0, 1): {min_non_missing}")

    regex = re.compile(pattern)
    fractions = non_missing_fraction(df)

    kept: List[str] = []
    dropped_pattern: List[str] = []
    dropped_sparse: List[str] = []
    for col in df.columns:
        if col == outcome:
            continue
        if not regex.search(str(col)):
            dropped_pattern.append(col)
        elif fractions[col] > min_non_missing:
            kept.append(col)
        else:
            dropped_sparse.append(col)

    report = FilterReport(
        kept=kept,
        dropped_by_pattern=dropped_pattern,
        dropped_by_missingness=dropped_sparse,
        non_missing_fraction={str(k): float(v) for k, v in fractions.items()},
    )
    logger.info(
        f"Columns kept: {len(kept)}/{len(df.columns) - 1} "
        f"(pattern drop: {len(dropped_pattern)}, sparse drop: {len(dropped_sparse)})"
    )
    return df[kept + [outcome]].copy(), report


def restrict_quiz_table(
    quiz: pd.DataFrame,
    training_columns: Iterable[str],
    id_column: Optional[str] = "problem_id",
) -> pd.DataFrame:
    """Ограничивает quiz-таблицу колонками обучающей выборки (в том же порядке).

    Индексом становится `id_column`, если он есть. Отсутствие любой обучающей
    колонки означает расхождение схем (KeyError).
    """
    columns = list(training_columns)
    missing = [c for c in columns if c not in quiz.columns]
    if missing:
        raise KeyError(f"В quiz-таблице отсутствуют колонки обучающей выборки: {missing}")

    restricted = quiz[columns].copy()
    if id_column and id_column in quiz.columns:
        restricted.index = pd.Index(quiz[id_column].values, name=id_column)
    return restricted
