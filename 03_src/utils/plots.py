"""Графики отчёта: корреляции, сравнение точности моделей, confusion matrix, важность признаков."""

from __future__ import annotations

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from scipy import stats
from sklearn.metrics import ConfusionMatrixDisplay


def plot_correlation_matrix(
    coefficients: pd.DataFrame,
    pvalues: Optional[pd.DataFrame] = None,
    sig_level: float = 0.05,
):
    """Тепловая карта корреляций; незначимые ячейки (p >= sig_level) оставляем пустыми."""
    values = coefficients.to_numpy(dtype=float).copy()
    if pvalues is not None:
        p = pvalues.reindex(index=coefficients.index, columns=coefficients.columns).to_numpy(dtype=float)
        insignificant = ~(p < sig_level)
        np.fill_diagonal(insignificant, False)
        values[insignificant] = np.nan

    n = len(coefficients.columns)
    size = max(6.0, 0.22 * n)
    fig, ax = plt.subplots(figsize=(size, size))
    im = ax.imshow(np.ma.masked_invalid(values), cmap="RdBu_r", vmin=-1.0, vmax=1.0)
    ax.set_xticks(range(n))
    ax.set_yticks(range(n))
    fontsize = 8 if n <= 30 else 5
    ax.set_xticklabels(coefficients.columns, rotation=90, fontsize=fontsize)
    ax.set_yticklabels(coefficients.index, fontsize=fontsize)
    ax.set_title("Correlation matrix (blank: p >= %.2f)" % sig_level)
    fig.colorbar(im, ax=ax, fraction=0.046, pad=0.04)
    fig.tight_layout()
    return fig


def plot_accuracy_comparison(cv_accuracy: pd.DataFrame):
    """Плотность распределения CV-точности по фолдам и boxplot для каждой модели."""
    fig, (ax_density, ax_box) = plt.subplots(1, 2, figsize=(12, 4.5))

    lo = float(np.nanmin(cv_accuracy.to_numpy())) if cv_accuracy.size else 0.0
    hi = float(np.nanmax(cv_accuracy.to_numpy())) if cv_accuracy.size else 1.0
    pad = max((hi - lo) * 0.5, 0.005)
    grid = np.linspace(lo - pad, min(hi + pad, 1.0 + pad), 300)

    for name in cv_accuracy.columns:
        acc = cv_accuracy[name].dropna().to_numpy(dtype=float)
        if len(acc) > 1 and np.std(acc) > 0:
            density = stats.gaussian_kde(acc)(grid)
            ax_density.plot(grid, density, label=name)
        else:
            # Вырожденное распределение: KDE не определена
            ax_density.axvline(float(acc.mean()) if len(acc) else np.nan, label=name, linestyle="--")
        ax_density.plot(acc, np.zeros_like(acc), "|", markersize=12, color=ax_density.lines[-1].get_color())

    ax_density.set_xlabel("Accuracy")
    ax_density.set_ylabel("Density")
    ax_density.set_title("Cross-validation accuracy density")
    ax_density.legend()

    ax_box.boxplot([cv_accuracy[c].dropna().to_numpy() for c in cv_accuracy.columns])
    ax_box.set_xticks(range(1, len(cv_accuracy.columns) + 1))
    ax_box.set_xticklabels(cv_accuracy.columns)
    ax_box.set_ylabel("Accuracy")
    ax_box.set_title(f"Accuracy over {len(cv_accuracy)} folds")
    ax_box.grid(True, alpha=0.3)

    fig.tight_layout()
    return fig


def plot_confusion_matrix(cm: pd.DataFrame, title: str = "Confusion Matrix"):
    fig, ax = plt.subplots(figsize=(5, 5))
    disp = ConfusionMatrixDisplay(confusion_matrix=cm.to_numpy(), display_labels=list(cm.columns))
    disp.plot(ax=ax, colorbar=False)
    ax.set_title(title)
    fig.tight_layout()
    return fig


def plot_feature_importance(importance: pd.Series, top_n: int = 20, title: str = "Feature importance"):
    top = importance.sort_values(ascending=False).head(top_n).iloc[::-1]
    fig, ax = plt.subplots(figsize=(7, max(3.0, 0.3 * len(top))))
    ax.barh(top.index.astype(str), top.values)
    ax.set_title(title)
    ax.set_xlabel("Importance")
    fig.tight_layout()
    return fig
