"""
Тесты системы генерации отчетов анализа и графиков
"""

import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

# Добавляем путь к модулям проекта
current_dir = Path(__file__).parent
src_path = current_dir.parent / "03_src"
sys.path.insert(0, str(src_path))

from utils.plots import (  # noqa: E402
    plot_accuracy_comparison,
    plot_confusion_matrix,
    plot_correlation_matrix,
    plot_feature_importance,
)
from utils.report_generator import AnalysisReportGenerator  # noqa: E402


def test_report_system(tmp_path):
    """Тестирует систему генерации отчетов"""
    report = AnalysisReportGenerator(tmp_path / "run")

    report.add_header('Тестовый отчет системы', level=1)
    report.add_text('Это тестовый отчет для проверки работы системы автоматического сохранения.')

    test_data = pd.DataFrame({
        'Параметр': ['Среднее', 'Медиана', 'Стд. отклонение'],
        'Значение': [1.2345, 1.1234, 0.5678]
    })
    report.add_table(test_data, 'Тестовая таблица', index=False)

    fig, ax = plt.subplots()
    ax.plot(np.linspace(0, 10, 100), np.sin(np.linspace(0, 10, 100)))
    img_path = report.save_figure(fig, 'Синусоида: тест', 'Проверка сохранения графика')

    report.add_code_block("print('hello')", 'python')
    report_path = report.save_report()

    assert report_path == tmp_path / "run" / "report.md"
    assert report_path.exists()
    assert img_path.exists()
    assert img_path.parent == report.images_dir
    assert img_path.name == "fig_01_синусоида_тест.png"

    content = report_path.read_text(encoding='utf-8')
    assert content.startswith('# Тестовый отчет системы')
    assert '**Тестовая таблица**' in content
    assert '| Параметр' in content
    assert f"](images/{img_path.name})" in content
    assert "```python" in content
    assert "- Количество изображений: `1`" in content

    # Фигура закрыта после сохранения
    assert not plt.fignum_exists(fig.number)


def test_capture_output_and_statistics(tmp_path):
    report = AnalysisReportGenerator(tmp_path, report_filename="stats.md")

    result = report.capture_output(lambda: print("Confusion matrix printed") or 42)
    df = pd.DataFrame({"roll_belt": [1.0, 2.0, np.nan], "classe": ["A", "B", "C"]})
    report.add_statistics_summary(df)
    path = report.save_report()

    assert result == 42
    content = path.read_text(encoding='utf-8')
    assert "Confusion matrix printed" in content
    assert "Размер: 3 строк, 2 столбцов" in content
    assert "Пропущенные значения: 1" in content


def test_model_section_and_key_values(tmp_path):
    report = AnalysisReportGenerator(tmp_path)
    labels = ["A", "B"]
    cm = pd.DataFrame([[3, 1], [0, 4]], index=labels, columns=labels)
    metrics = pd.DataFrame([{"test_accuracy": 0.875}], index=["bagged_cart"])

    fig, _ = plt.subplots()
    report.add_model_section("Bagged CART", metrics, cm, fig)
    report.add_key_values({"n_train": 30, "n_test": 10}, caption="Разбиение")
    content = "\n".join(report.report_content)

    assert "### Bagged CART" in content
    assert "0.8750" in content
    assert "- n_train: `30`" in content
    assert report.figure_counter == 1
    assert (report.images_dir / "fig_01.png").exists()


def test_correlation_plot_blanks_insignificant_cells(tmp_path):
    coef = pd.DataFrame([[1.0, 0.8], [0.8, 1.0]], index=["a", "b"], columns=["a", "b"])
    pvalues = pd.DataFrame([[np.nan, 0.2], [0.2, np.nan]], index=["a", "b"], columns=["a", "b"])

    fig = plot_correlation_matrix(coef, pvalues, sig_level=0.05)

    shown = fig.axes[0].images[0].get_array()
    assert shown.mask[0, 1] and shown.mask[1, 0]
    assert not shown.mask[0, 0]
    img_path = AnalysisReportGenerator(tmp_path).save_figure(fig, "Correlation matrix")
    assert img_path.name == "fig_01_correlation_matrix.png"
    assert img_path.exists()


def test_accuracy_comparison_handles_degenerate_folds(tmp_path):
    cv = pd.DataFrame({
        "random_forest": [0.99, 0.98, 1.0],
        "bagged_cart": [1.0, 1.0, 1.0],
    })
    fig = plot_accuracy_comparison(cv)
    assert len(fig.axes) == 2
    assert AnalysisReportGenerator(tmp_path).save_figure(fig).exists()


def test_confusion_and_importance_plots(tmp_path):
    report = AnalysisReportGenerator(tmp_path)
    labels = ["A", "B", "C"]
    cm = pd.DataFrame(
        [[5, 1, 0], [0, 6, 0], [0, 0, 4]],
        index=pd.Index(labels, name="Reference"),
        columns=pd.Index(labels, name="Prediction"),
    )
    fig = plot_confusion_matrix(cm, title="random_forest")
    assert fig.axes[0].get_title() == "random_forest"
    report.save_figure(fig)

    importance = pd.Series(np.arange(30, dtype=float), index=[f"f{i}" for i in range(30)])
    fig = plot_feature_importance(importance, top_n=10)
    bars = fig.axes[0].patches
    assert len(bars) == 10
    report.save_figure(fig)

    assert sorted(p.name for p in report.images_dir.iterdir()) == ["fig_01.png", "fig_02.png"]
