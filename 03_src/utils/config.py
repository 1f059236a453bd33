"""
Загрузка конфигурации анализа из YAML (04_configs/analysis.yml).

Значения по умолчанию в датаклассах совпадают с зафиксированными параметрами
анализа, поэтому запуск без файла конфигурации воспроизводит те же результаты.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

TRAINING_URL = "https://d396qusza40orc.cloudfront.net/predmachlearn/pml-training.csv"
QUIZ_URL = "https://d396qusza40orc.cloudfront.net/predmachlearn/pml-testing.csv"

MODEL_NAMES = ("random_forest", "gradient_boosting", "bagged_cart")


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _load_yaml(path: Path) -> Dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _default_models() -> Dict[str, Dict[str, Any]]:
    return {
        "random_forest": {"enabled": True, "params": {"n_estimators": 250, "max_features": "sqrt"}},
        "gradient_boosting": {
            "enabled": True,
            "params": {"n_estimators": 150, "learning_rate": 0.1, "max_depth": 3, "subsample": 0.8},
        },
        "bagged_cart": {"enabled": True, "params": {"n_estimators": 25}},
    }


@dataclass
class DatasetConfig:
    name: str = "pml_weight_lifting"
    training_source: str = TRAINING_URL
    quiz_source: str = QUIZ_URL
    na_values: List[str] = field(default_factory=lambda: ["NA", "", "#DIV/0!"])
    outcome: str = "classe"
    quiz_id_column: str = "problem_id"


@dataclass
class FilterConfig:
    column_pattern: str = "belt|arm|dumbbell|forearm"
    min_non_missing: float = 0.9


@dataclass
class SelectionConfig:
    max_pvalue: float = 0.05
    min_abs_correlation: float = 0.05


@dataclass
class ParallelConfig:
    backend: str = "loky"
    reserve_cores: int = 1
    n_jobs: Optional[int] = None


@dataclass
class ImportanceSettings:
    enabled: bool = True
    n_repeats: int = 5
    top_n: int = 20


@dataclass
class AnalysisConfig:
    experiment_id: str = "exp_0001"
    dataset: DatasetConfig = field(default_factory=DatasetConfig)
    filtering: FilterConfig = field(default_factory=FilterConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    test_size: float = 0.25
    n_splits: int = 10
    random_state: int = 12345
    parallel: ParallelConfig = field(default_factory=ParallelConfig)
    models: Dict[str, Dict[str, Any]] = field(default_factory=_default_models)
    importance: ImportanceSettings = field(default_factory=ImportanceSettings)
    artifacts: Dict[str, bool] = field(default_factory=dict)
    reports_dir: str = "06_reports"
    log_level: str = "INFO"

    def enabled_models(self) -> List[str]:
        return [name for name, cfg in self.models.items() if (cfg or {}).get("enabled", False)]

    def artifact_enabled(self, key: str) -> bool:
        return bool(self.artifacts.get(key, True))


def config_from_dict(raw: Dict) -> AnalysisConfig:
    """Собирает AnalysisConfig из словаря (структура как в analysis.yml)."""
    ds = raw.get("dataset") or {}
    flt = raw.get("filtering") or {}
    sel = raw.get("selection") or {}
    par = raw.get("parallel") or {}
    imp = raw.get("importance") or {}
    ps = raw.get("pipeline_settings") or {}

    defaults = AnalysisConfig()
    # Допустимы только модели из MODEL_NAMES
    models = raw.get("models") or defaults.models
    unknown = [name for name in models if name not in MODEL_NAMES]
    if unknown:
        raise ValueError(f"Неизвестные модели в конфигурации: {unknown}. Допустимые: {list(MODEL_NAMES)}")

    return AnalysisConfig(
        experiment_id=str((raw.get("experiment") or {}).get("current_id", defaults.experiment_id)),
        dataset=DatasetConfig(
            name=ds.get("name", defaults.dataset.name),
            training_source=ds.get("training_source", defaults.dataset.training_source),
            quiz_source=ds.get("quiz_source", defaults.dataset.quiz_source),
            na_values=list(ds.get("na_values", defaults.dataset.na_values)),
            outcome=ds.get("outcome", defaults.dataset.outcome),
            quiz_id_column=ds.get("quiz_id_column", defaults.dataset.quiz_id_column),
        ),
        filtering=FilterConfig(
            column_pattern=flt.get("column_pattern", defaults.filtering.column_pattern),
            min_non_missing=float(flt.get("min_non_missing", defaults.filtering.min_non_missing)),
        ),
        selection=SelectionConfig(
            max_pvalue=float(sel.get("max_pvalue", defaults.selection.max_pvalue)),
            min_abs_correlation=float(sel.get("min_abs_correlation", defaults.selection.min_abs_correlation)),
        ),
        test_size=float((raw.get("splits") or {}).get("test_size", defaults.test_size)),
        n_splits=int((raw.get("cv") or {}).get("n_splits", defaults.n_splits)),
        random_state=int((raw.get("common") or {}).get("random_state", defaults.random_state)),
        parallel=ParallelConfig(
            backend=par.get("backend", defaults.parallel.backend),
            reserve_cores=int(par.get("reserve_cores", defaults.parallel.reserve_cores)),
            n_jobs=par.get("n_jobs"),
        ),
        models=models,
        importance=ImportanceSettings(
            enabled=bool(imp.get("enabled", True)),
            n_repeats=int(imp.get("n_repeats", defaults.importance.n_repeats)),
            top_n=int(imp.get("top_n", defaults.importance.top_n)),
        ),
        artifacts=dict(raw.get("artifacts") or {}),
        reports_dir=ps.get("reports_dir", defaults.reports_dir),
        log_level=str((ps.get("logging") or {}).get("level", defaults.log_level)),
    )


def load_config(config_path: Optional[str] = None) -> AnalysisConfig:
    """Загружает конфигурацию; без пути берётся 04_configs/analysis.yml.

    Отсутствующий файл по умолчанию не ошибка: используются встроенные значения.
    Явно указанный, но несуществующий файл: FileNotFoundError.
    """
    if config_path is None:
        path = _project_root() / "04_configs" / "analysis.yml"
        if not path.exists():
            return AnalysisConfig()
    else:
        path = Path(config_path)
        if not path.is_absolute():
            path = _project_root() / path
        if not path.exists():
            raise FileNotFoundError(f"Не найден файл конфигурации: {path}")
    return config_from_dict(_load_yaml(path))


def save_config_snapshot(config: AnalysisConfig, path: Path) -> None:
    """Сохраняет снимок фактически использованной конфигурации рядом с артефактами запуска."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(asdict(config), f, allow_unicode=True, sort_keys=False)
