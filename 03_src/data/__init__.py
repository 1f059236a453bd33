"""Загрузка исходных таблиц и фильтрация колонок датчиков."""

from .ingestion import FilterReport, filter_columns, load_raw_table, restrict_quiz_table  # noqa: F401
