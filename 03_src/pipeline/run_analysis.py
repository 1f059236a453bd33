"""Полный прогон анализа качества выполнения упражнений.

Фазы:
1) Настройка окружения (конфиг, логирование, папка запуска)
2) Регистрация пула воркеров joblib
3) Загрузка обучающей таблицы и фильтрация колонок
4) Корреляционный анализ и график
5) Отбор признаков и разбиение train/test
6) Обучение RandomForest / GradientBoosting / Bagged CART с 10-fold CV
7) Сравнение моделей (таблица, графики точности, confusion matrix)
8) Остановка пула воркеров
9) Предсказание для quiz-выборки лучшей моделью

Запуск из корня проекта: python 03_src/pipeline/run_analysis.py [--config ...]
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import pandas as pd

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from data.ingestion import FilterReport, filter_columns, load_raw_table, restrict_quiz_table  # noqa: E402
from features.feature_selection import FeatureSelectionResult, SelectionThresholds, select_features  # noqa: E402
from models.experiment_logger import append_experiment_record  # noqa: E402
from models.feature_importance import ImportanceConfig, compute_feature_importance  # noqa: E402
from models.modeling_pipeline import ModelingRun, run_modeling_pipeline  # noqa: E402
from models.parallel_backend import WorkerPool  # noqa: E402
from models.quiz_prediction import predict_quiz  # noqa: E402
from utils.config import AnalysisConfig, load_config, save_config_snapshot  # noqa: E402
from utils.logging_utils import get_logger, set_log_level  # noqa: E402
from utils.plots import (  # noqa: E402
    plot_accuracy_comparison,
    plot_confusion_matrix,
    plot_correlation_matrix,
    plot_feature_importance,
)
from utils.report_generator import AnalysisReportGenerator  # noqa: E402

MODEL_TITLES = {
    "random_forest": "Random Forest",
    "gradient_boosting": "Stochastic Gradient Boosting",
    "bagged_cart": "Bagged CART",
}


@dataclass
class AnalysisResult:
    run_dir: Path
    filter_report: FilterReport
    selection: FeatureSelectionResult
    modeling: ModelingRun
    quiz_predictions: pd.Series
    importance: Optional[pd.DataFrame] = None
    report_path: Optional[Path] = None


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_to_project_root(path_str: str) -> Path:
    p = Path(path_str)
    if p.is_absolute():
        return p
    return _project_root() / p


def _infer_run_dir(reports_dir: Path, experiment_id: str) -> Path:
    """Создаёт подпапку запуска <reports_dir>/<exp_id>_<ts>."""
    base = reports_dir / f"{str(experiment_id).lower()}_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    run_dir = base
    suffix = 1
    while run_dir.exists():
        suffix += 1
        run_dir = base.with_name(f"{base.name}_{suffix}")
    run_dir.mkdir(parents=True)
    return run_dir


def _print_model_summary(modeling: ModelingRun) -> None:
    """Сводка по моделям и confusion matrix лучшей модели в stdout."""
    print(modeling.comparison_table().to_string(float_format=lambda v: f"{v:.4f}"))
    print(f"\nЛучшая модель: {modeling.best_model}")
    print(modeling.results[modeling.best_model].confusion_matrix.to_string())


def _write_report(
    report: AnalysisReportGenerator,
    cfg: AnalysisConfig,
    raw: pd.DataFrame,
    filter_report: FilterReport,
    selection: FeatureSelectionResult,
    modeling: ModelingRun,
    quiz_predictions: pd.Series,
    importance: Optional[pd.DataFrame],
) -> Path:
    outcome = cfg.dataset.outcome
    report.add_header("Weight Lifting Exercise: классификация качества выполнения", level=1)
    report.add_text(
        f"Запуск `{cfg.experiment_id}`, seed = {cfg.random_state}. "
        f"Источник: `{cfg.dataset.training_source}`."
    )

    report.add_header("Данные", level=2)
    report.add_text(f"Исходная таблица: {raw.shape[0]} строк, {raw.shape[1]} столбцов.")
    class_counts = raw[outcome].value_counts().sort_index().to_frame("count")
    report.add_table(class_counts, f"Распределение классов '{outcome}'", floatfmt=".0f")
    report.add_text(
        f"Фильтр колонок: шаблон `{cfg.filtering.column_pattern}`, доля непустых > {cfg.filtering.min_non_missing:.0%}."
    )
    report.add_bullets([
        f"оставлено признаков: {len(filter_report.kept)}",
        f"отброшено по шаблону имени: {len(filter_report.dropped_by_pattern)}",
        f"отброшено как разреженные: {len(filter_report.dropped_by_missingness)}",
    ])

    report.add_header("Корреляции и отбор признаков", level=2)
    fig = plot_correlation_matrix(selection.correlations.coefficients, selection.correlations.pvalues, cfg.selection.max_pvalue)
    report.save_figure(fig, "Correlation matrix", "Пустые ячейки: корреляция не значима на уровне 5%")
    report.add_text(
        f"Критерий отбора: p < {cfg.selection.max_pvalue}, |r| > {cfg.selection.min_abs_correlation}. "
        f"Отобрано {len(selection.selected_features)} из {len(selection.summary)} признаков."
    )
    report.add_table(selection.summary[["r", "p_value", "selected"]], "Корреляция признаков с целевой переменной")
    report.add_statistics_summary(selection.selected_table, title="Отобранные признаки")

    report.add_header("Модели", level=2)
    meta = modeling.split_meta
    report.add_key_values(
        {
            "n_train": meta["n_train"],
            "n_test": meta["n_test"],
            "test_size": meta["test_size"],
            "dropped_incomplete_rows": meta["n_dropped"],
            "cv_folds": meta["cv"]["n_splits"],
            "random_state": meta["random_state"],
        },
        caption="Стратифицированное разбиение; фолды CV общие для всех моделей",
    )
    for name, res in modeling.results.items():
        title = MODEL_TITLES.get(name, name)
        fig = plot_confusion_matrix(res.confusion_matrix, title=f"{title}: confusion matrix")
        report.add_model_section(title, pd.DataFrame([res.summary()], index=[name]), res.confusion_matrix, fig)

    report.add_header("Сравнение моделей", level=2)
    report.add_table(modeling.comparison_table(), "Сводка по моделям")
    fig = plot_accuracy_comparison(modeling.cv_accuracy_table())
    report.save_figure(fig, "Accuracy comparison", "Распределение точности по фолдам кросс-валидации")
    best = modeling.results[modeling.best_model]
    report.add_text(
        f"Лучшая модель: **{MODEL_TITLES.get(modeling.best_model, modeling.best_model)}**, "
        f"точность на test {best.test_accuracy:.4f}, ожидаемая ошибка вне выборки {best.oos_error:.4f}."
    )
    report.capture_output(_print_model_summary, modeling)

    if importance is not None:
        report.add_header("Важность признаков", level=2)
        fig = plot_feature_importance(importance["avg_total"], top_n=cfg.importance.top_n, title=f"{modeling.best_model}: importance")
        report.save_figure(fig, "Feature importance")

    report.add_header("Предсказания для quiz-выборки", level=2)
    report.add_table(quiz_predictions.to_frame(), index=True)
    return report.save_report()


def run_analysis(
    config: Optional[AnalysisConfig] = None,
    training_source: Optional[str] = None,
    quiz_source: Optional[str] = None,
    reports_dir: Optional[str] = None,
    models_to_run: Optional[List[str]] = None,
    make_report: bool = True,
) -> AnalysisResult:
    cfg = config or load_config()
    logger = get_logger("Analysis", cfg.log_level)
    set_log_level(cfg.log_level)
    training_source = training_source or cfg.dataset.training_source
    quiz_source = quiz_source or cfg.dataset.quiz_source

    reports_dp = _resolve_to_project_root(reports_dir or cfg.reports_dir)
    pool = WorkerPool(n_jobs=cfg.parallel.n_jobs, backend=cfg.parallel.backend, reserve_cores=cfg.parallel.reserve_cores)
    try:
        run_dir = _infer_run_dir(reports_dp, cfg.experiment_id)
        save_config_snapshot(cfg, run_dir / "analysis_config.yml")
        logger.info(f"STARTING ANALYSIS RUN: {run_dir}")

        pool.start()
        try:
            raw = load_raw_table(training_source, cfg.dataset.na_values)
            filtered, filter_report = filter_columns(
                raw,
                pattern=cfg.filtering.column_pattern,
                outcome=cfg.dataset.outcome,
                min_non_missing=cfg.filtering.min_non_missing,
            )

            selection = select_features(
                filtered,
                outcome=cfg.dataset.outcome,
                thresholds=SelectionThresholds(cfg.selection.max_pvalue, cfg.selection.min_abs_correlation),
            )
            if cfg.artifact_enabled("save_selected_features"):
                selection.selected_table.to_parquet(run_dir / "selected_features.parquet")
                selection.summary.to_csv(run_dir / "outcome_correlations.csv")

            modeling = run_modeling_pipeline(
                selection.selected_table,
                config=cfg,
                save_dir=run_dir,
                models_to_run=models_to_run,
                pool=pool,
            )
        finally:
            pool.stop()

        best = modeling.results[modeling.best_model]
        importance = None
        if cfg.importance.enabled:
            importance = compute_feature_importance(
                modeling.best_model,
                best.model,
                modeling.X_test,
                modeling.y_test,
                run_dir,
                ImportanceConfig(n_repeats=cfg.importance.n_repeats, random_state=cfg.random_state),
            )

        quiz_raw = load_raw_table(quiz_source, cfg.dataset.na_values)
        quiz_table = restrict_quiz_table(quiz_raw, selection.selected_features, cfg.dataset.quiz_id_column)
        quiz_predictions = predict_quiz(best.model, quiz_table, run_dir / "quiz_predictions.csv")

        report_path = None
        if make_report:
            report = AnalysisReportGenerator(run_dir)
            report_path = _write_report(
                report, cfg, raw, filter_report, selection, modeling, quiz_predictions, importance
            )

        if cfg.artifact_enabled("log_experiment"):
            best_params = (cfg.models.get(modeling.best_model) or {}).get("params") or {}
            append_experiment_record(
                reports_dp / "experiments.csv",
                experiment_id=cfg.experiment_id,
                comparison=modeling.comparison_table(),
                dataset_name=cfg.dataset.name,
                n_features=len(selection.selected_features),
                split_meta=modeling.split_meta,
                seed=cfg.random_state,
                model_name=modeling.best_model,
                params_str=json.dumps(best_params, ensure_ascii=False, sort_keys=True),
                quiz_predictions=quiz_predictions,
            )
    except Exception as e:
        logger.error(f"Analysis failed: {e}", exc_info=True)
        raise

    logger.info("ANALYSIS COMPLETED SUCCESSFULLY!")
    return AnalysisResult(
        run_dir=run_dir,
        filter_report=filter_report,
        selection=selection,
        modeling=modeling,
        quiz_predictions=quiz_predictions,
        importance=importance,
        report_path=report_path,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Классификация качества выполнения упражнений по данным носимых датчиков."
    )
    parser.add_argument("--config", default=None, help="Путь к YAML конфигурации (по умолчанию 04_configs/analysis.yml).")
    parser.add_argument("--training-source", default=None, help="URL или путь к обучающему CSV.")
    parser.add_argument("--quiz-source", default=None, help="URL или путь к quiz CSV.")
    parser.add_argument("--reports-dir", default=None, help="Папка для артефактов запуска.")
    parser.add_argument(
        "--models",
        nargs="+",
        default=None,
        choices=sorted(MODEL_TITLES),
        help="Список моделей (по умолчанию включённые в конфигурации).",
    )
    parser.add_argument("--no-report", action="store_true", help="Не строить markdown-отчет.")
    parser.add_argument("--log-level", default=None, help="Уровень логирования (DEBUG, INFO, ...).")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    cfg = load_config(args.config)
    if args.log_level:
        cfg.log_level = args.log_level.upper()

    result = run_analysis(
        config=cfg,
        training_source=args.training_source,
        quiz_source=args.quiz_source,
        reports_dir=args.reports_dir,
        models_to_run=args.models,
        make_report=not args.no_report,
    )

    print("\n" + "=" * 60)
    _print_model_summary(result.modeling)
    print(f"Quiz: {' '.join(str(p) for p in result.quiz_predictions)}")
    print(f"Артефакты: {result.run_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
