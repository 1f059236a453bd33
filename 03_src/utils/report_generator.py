"""
Markdown-отчет одного запуска анализа.

Отчет пишется в папку запуска (report.md), картинки складываются в images/
рядом с ним и подключаются относительными ссылками.
"""

import contextlib
import datetime
from io import StringIO
from pathlib import Path
from typing import Dict, Iterable, Optional

import matplotlib.pyplot as plt
import pandas as pd


def _slug(title: str) -> str:
    kept = "".join(c for c in title if c.isalnum() or c in (' ', '-', '_')).strip()
    return kept.replace(' ', '_').lower()


class AnalysisReportGenerator:
    """Накопитель markdown-блоков с сохранением графиков"""

    def __init__(self, report_dir: str, report_filename: str = "report.md"):
        """
        Args:
            report_dir: Папка запуска, куда пишется отчет и images/
            report_filename: Имя markdown-файла отчета
        """
        self.report_dir = Path(report_dir)
        self.images_dir = self.report_dir / "images"
        self.images_dir.mkdir(parents=True, exist_ok=True)

        self.report_filename = report_filename
        self.report_path = self.report_dir / report_filename
        self.report_content = []
        self.figure_counter = 0

    def _emit(self, *lines: str):
        # Каждый блок markdown отделяется пустой строкой
        self.report_content.extend(lines)
        self.report_content.append("")

    def add_header(self, text: str, level: int = 1):
        self._emit(f"{'#' * level} {text}")

    def add_text(self, text: str):
        self._emit(text)

    def add_bullets(self, items: Iterable[str]):
        self._emit(*[f"- {item}" for item in items])

    def add_key_values(self, values: Dict[str, object], caption: Optional[str] = None):
        """Список «ключ: значение», например параметры разбиения."""
        if caption:
            self._emit(f"**{caption}**")
        self.add_bullets(f"{key}: `{value}`" for key, value in values.items())

    def add_code_block(self, code: str, language: str = "python"):
        self._emit(f"```{language}", code, "```")

    def add_table(self, df: pd.DataFrame, caption: str = None, index: bool = True, floatfmt: str = ".4f"):
        if caption:
            self._emit(f"**{caption}**")
        self._emit(df.to_markdown(index=index, floatfmt=floatfmt))

    def save_figure(self, fig, title: str = None, caption: str = None, dpi: int = 150) -> Path:
        """
        Сохраняет фигуру в images/, закрывает её и вставляет ссылку в отчет.

        Имя файла: fig_<номер>[_<заголовок>].png
        """
        self.figure_counter += 1
        suffix = f"_{_slug(title)}" if title else ""
        img_filename = f"fig_{self.figure_counter:02d}{suffix}.png"
        img_path = self.images_dir / img_filename

        fig.savefig(img_path, dpi=dpi, bbox_inches='tight', facecolor='white')
        plt.close(fig)

        if title:
            self.add_header(title, level=3)
        alt = caption or title or f"Figure {self.figure_counter}"
        self._emit(f"![{alt}](images/{img_filename})")
        if caption:
            self._emit(f"*{caption}*")
        return img_path

    def add_model_section(self, title: str, metrics: pd.DataFrame, confusion: pd.DataFrame, fig=None):
        """Блок одной модели: метрики, confusion matrix таблицей и (опционально) картинкой."""
        self.add_header(title, level=3)
        self.add_table(metrics, "Метрики")
        self.add_table(confusion, "Confusion matrix (test)", floatfmt=".0f")
        if fig is not None:
            self.save_figure(fig, caption=f"{title}: confusion matrix")

    def capture_output(self, func, *args, **kwargs):
        """Выполняет func и вставляет его stdout в отчет блоком кода."""
        buffer = StringIO()
        with contextlib.redirect_stdout(buffer):
            result = func(*args, **kwargs)

        output = buffer.getvalue().strip()
        if output:
            self.add_code_block(output, language="")
        return result

    def add_statistics_summary(self, df: pd.DataFrame, title: str = "Статистическая сводка", max_columns: int = 12):
        """describe() по первым max_columns числовым колонкам и общая информация о таблице."""
        self.add_header(title, level=2)

        numeric = df.select_dtypes(include="number")
        shown = numeric.iloc[:, :max_columns]
        self.add_table(shown.describe().T, f"Описательная статистика (первые {shown.shape[1]} числовых колонок)")

        self._emit("**Информация о датасете:**")
        self.add_bullets([
            f"Размер: {df.shape[0]} строк, {df.shape[1]} столбцов",
            f"Числовых столбцов: {numeric.shape[1]}",
            f"Пропущенные значения: {int(df.isnull().sum().sum())}",
            f"Размер в памяти: {df.memory_usage(deep=True).sum() / 1024**2:.2f} MB",
        ])

    def save_report(self) -> Path:
        self.add_header("Информация о генерации отчета", level=2)
        self.add_key_values({
            "Дата генерации": datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            "Файл отчета": self.report_filename,
            "Количество изображений": self.figure_counter,
        })

        self.report_path.write_text('\n'.join(self.report_content), encoding='utf-8')

        print(f"✅ Отчет сохранен: {self.report_path}")
        print(f"📊 Сохранено изображений: {self.figure_counter}")
        return self.report_path
