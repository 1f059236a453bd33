"""Вспомогательные модули: конфигурация, логирование, графики и markdown-отчет."""
