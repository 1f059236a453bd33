from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.ensemble import BaggingClassifier
from sklearn.inspection import permutation_importance


@dataclass
class ImportanceConfig:
    scoring: str = "accuracy"
    n_repeats: int = 5
    random_state: int = 12345


def _native_importance(model, X: pd.DataFrame) -> pd.Series:
    cols = X.columns
    values = getattr(model, "feature_importances_", None)
    if values is not None:
        return pd.Series(np.asarray(values, dtype=float), index=cols, dtype=float)

    if isinstance(model, BaggingClassifier):
        # У бэггинга нет собственных важностей: усредняем по деревьям с учётом подвыборки признаков
        total = np.zeros(len(cols), dtype=float)
        for tree, feats in zip(model.estimators_, model.estimators_features_):
            total[np.asarray(feats)] += tree.feature_importances_
        total /= max(len(model.estimators_), 1)
        return pd.Series(total, index=cols, dtype=float)

    return pd.Series(np.zeros(len(cols), dtype=float), index=cols, dtype=float)


def _permutation_importance(model, X: pd.DataFrame, y: pd.Series, cfg: ImportanceConfig) -> pd.Series:
    r = permutation_importance(
        model,
        X,
        y,
        scoring=cfg.scoring,
        n_repeats=cfg.n_repeats,
        random_state=cfg.random_state,
    )
    return pd.Series(r.importances_mean, index=X.columns, dtype=float)


def _save_raw_and_summary(fi_map: Dict[str, pd.Series], save_dir: Path) -> Tuple[Path, Path, pd.DataFrame]:
    df = pd.DataFrame(fi_map).fillna(0.0)

    native_cols = [c for c in df.columns if c.startswith("native:")]
    perm_cols = [c for c in df.columns if c.startswith("permutation:")]
    df = df[native_cols + perm_cols]

    raw_fp = save_dir / "raw_importances.csv"
    df.to_csv(raw_fp)

    # Нормировка на сумму модулей по каждой колонке
    normed = df.div(df.abs().sum(axis=0).replace(0.0, 1.0), axis=1)
    summary = pd.DataFrame(index=df.index)
    summary["avg_native"] = normed[native_cols].mean(axis=1) if native_cols else 0.0
    summary["avg_perm"] = normed[perm_cols].mean(axis=1) if perm_cols else 0.0
    summary["avg_total"] = normed.mean(axis=1)
    summary["all_zero"] = df.abs().sum(axis=1) == 0.0

    summary_df = pd.concat([df, summary], axis=1).sort_values("avg_total", ascending=False)
    summary_fp = save_dir / "summary_importances.csv"
    summary_df.to_csv(summary_fp)

    return raw_fp, summary_fp, summary_df


def compute_feature_importance(
    model_name: str,
    model,
    X_test: pd.DataFrame,
    y_test: pd.Series,
    save_dir: Path,
    cfg: Optional[ImportanceConfig] = None,
) -> pd.DataFrame:
    """Важность признаков выбранной модели на тестовой части.

    Сохраняет raw_importances.csv, summary_importances.csv и fi_meta.json
    в `save_dir/feature_importance` и возвращает сводную таблицу.
    """
    imp_cfg = cfg or ImportanceConfig()
    fi_dir = Path(save_dir) / "feature_importance"
    fi_dir.mkdir(parents=True, exist_ok=True)

    fi_map: Dict[str, pd.Series] = {
        f"native:{model_name}_native": _native_importance(model, X_test),
        f"permutation:{model_name}_perm_{imp_cfg.scoring}": _permutation_importance(model, X_test, y_test, imp_cfg),
    }
    raw_fp, summary_fp, summary_df = _save_raw_and_summary(fi_map, fi_dir)

    meta = {
        "model": model_name,
        "scoring": imp_cfg.scoring,
        "n_repeats": imp_cfg.n_repeats,
        "random_state": imp_cfg.random_state,
        "n_test": int(len(X_test)),
        "raw_importances": str(raw_fp),
        "summary_importances": str(summary_fp),
    }
    with open(fi_dir / "fi_meta.json", "w", encoding="utf-8") as f:
        json.dump(meta, f, ensure_ascii=False, indent=2)

    return summary_df


__all__ = [
    "ImportanceConfig",
    "compute_feature_importance",
]
