"""Сквозной прогон анализа: от загрузки данных до предсказаний для quiz-выборки."""
