"""
Отбор признаков по корреляции с целевой переменной.

Признак остаётся, если его корреляция с закодированной целью статистически
значима (p < max_pvalue) и по модулю превышает min_abs_correlation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from utils.logging_utils import get_logger

from .correlation import CorrelationResult, compute_correlation_matrices, encode_outcome, outcome_correlations

logger = get_logger("FeatureSelection")


@dataclass
class SelectionThresholds:
    max_pvalue: float = 0.05
    min_abs_correlation: float = 0.05


@dataclass
class FeatureSelectionResult:
    selected_table: pd.DataFrame
    selected_features: List[str]
    correlations: CorrelationResult
    summary: pd.DataFrame


def _numeric_with_outcome(filtered: pd.DataFrame, outcome: str) -> pd.DataFrame:
    predictors = filtered.drop(columns=[outcome]).select_dtypes(include=[np.number])
    data = predictors.copy()
    data[outcome] = encode_outcome(filtered[outcome])
    return data


def select_features(
    filtered: pd.DataFrame,
    outcome: str = "classe",
    thresholds: Optional[SelectionThresholds] = None,
) -> FeatureSelectionResult:
    """Считает корреляции и оставляет признаки, прошедшие оба порога.

    Возвращаемая таблица содержит выбранные признаки (в исходном порядке)
    и исходную (некодированную) цель последней колонкой.
    """
    th = thresholds or SelectionThresholds()
    if outcome not in filtered.columns:
        raise KeyError(f"В таблице отсутствует целевая колонка '{outcome}'")

    data = _numeric_with_outcome(filtered, outcome)
    correlations = compute_correlation_matrices(data)

    summary = outcome_correlations(correlations, outcome)
    summary["abs_r"] = summary["r"].abs()
    # NaN в r или p_value не проходит ни одно сравнение
    summary["selected"] = (summary["p_value"] < th.max_pvalue) & (summary["abs_r"] > th.min_abs_correlation)

    selected = [c for c in summary.index if bool(summary.at[c, "selected"])]
    if not selected:
        raise ValueError(
            f"Ни один признак не прошёл отбор (p < {th.max_pvalue}, |r| > {th.min_abs_correlation})"
        )

    logger.info(f"Selected {len(selected)}/{len(summary)} predictors correlated with '{outcome}'")
    selected_table = filtered[selected + [outcome]].copy()
    return FeatureSelectionResult(
        selected_table=selected_table,
        selected_features=selected,
        correlations=correlations,
        summary=summary.sort_values("abs_r", ascending=False),
    )
