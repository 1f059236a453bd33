"""
Корреляционный анализ признаков датчиков.

Считает пару матриц (коэффициенты Пирсона + p-value) по попарно полным
наблюдениям. P-value рассчитывается через t-статистику:
    t = r * sqrt((n - 2) / (1 - r^2)),  df = n - 2
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import stats

__all__ = ["CorrelationResult", "encode_outcome", "compute_correlation_matrices", "outcome_correlations"]


@dataclass
class CorrelationResult:
    coefficients: pd.DataFrame
    pvalues: pd.DataFrame
    n_obs: pd.DataFrame


def encode_outcome(labels: pd.Series) -> pd.Series:
    """Кодирует категориальную цель (A..E) числами 1..K в отсортированном порядке уровней."""
    categories = sorted(pd.Series(labels).dropna().unique().tolist())
    codes = pd.Categorical(labels, categories=categories).codes.astype(float)
    codes[codes < 0] = np.nan
    return pd.Series(codes + 1.0, index=labels.index, name=labels.name)


def compute_correlation_matrices(df: pd.DataFrame) -> CorrelationResult:
    """
    Матрица коэффициентов корреляции и матрица p-value по числовым колонкам.

    Обе матрицы симметричны; на диагонали p-value не определено (NaN).
    Для пар с n < 3 или нулевой дисперсией коэффициент и p-value равны NaN.
    """
    numeric = df.select_dtypes(include=[np.number]).astype(float)
    if numeric.shape[1] < 2:
        raise ValueError("Для корреляционного анализа нужно минимум две числовые колонки")

    coef = numeric.corr(method="pearson", min_periods=3)

    mask = numeric.notna().astype(float)
    n_obs = mask.T.dot(mask)

    r = coef.to_numpy()
    n = n_obs.to_numpy()
    dof = n - 2.0
    with np.errstate(divide="ignore", invalid="ignore"):
        t_stat = r * np.sqrt(dof / (1.0 - r ** 2))
        p = 2.0 * stats.t.sf(np.abs(t_stat), dof)
    # |r| == 1 даёт бесконечную t-статистику: p = 0
    p = np.where(np.isclose(np.abs(r), 1.0) & (dof > 0), 0.0, p)
    p = np.where(dof > 0, p, np.nan)
    np.fill_diagonal(p, np.nan)

    pvalues = pd.DataFrame(p, index=coef.index, columns=coef.columns)
    return CorrelationResult(coefficients=coef, pvalues=pvalues, n_obs=n_obs.astype(int))


def outcome_correlations(result: CorrelationResult, outcome: str) -> pd.DataFrame:
    """Срез «признак ↔ цель»: колонки r, p_value, n (без самой цели)."""
    if outcome not in result.coefficients.columns:
        raise KeyError(f"Целевая колонка '{outcome}' отсутствует в матрице корреляций")
    predictors = [c for c in result.coefficients.columns if c != outcome]
    return pd.DataFrame(
        {
            "r": result.coefficients.loc[predictors, outcome],
            "p_value": result.pvalues.loc[predictors, outcome],
            "n": result.n_obs.loc[predictors, outcome],
        }
    )
