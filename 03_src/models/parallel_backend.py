"""Общий пул воркеров joblib для обучения моделей.

Пул создаётся один раз (число процессов = ядра - 1) и регистрируется как
бэкенд по умолчанию: sklearn (cross_validate, permutation_importance) с
n_jobs=None раскладывает фолды по этому пулу.
"""

from __future__ import annotations

from typing import Optional

import joblib
from joblib import parallel_config

from utils.logging_utils import get_logger

logger = get_logger("WorkerPool")


class WorkerPool:
    """Регистрация и остановка общего пула процессов (контекстный менеджер)."""

    def __init__(self, n_jobs: Optional[int] = None, backend: str = "loky", reserve_cores: int = 1):
        self.backend = backend
        self.n_jobs = int(n_jobs) if n_jobs else self.default_n_jobs(reserve_cores)
        self._config: Optional[parallel_config] = None
        self._stopped = False

    @staticmethod
    def default_n_jobs(reserve_cores: int = 1) -> int:
        return max(1, joblib.cpu_count() - int(reserve_cores))

    @property
    def active(self) -> bool:
        return self._config is not None

    def start(self) -> "WorkerPool":
        if self._config is not None:
            return self
        if self._stopped:
            raise RuntimeError("Пул воркеров уже остановлен; создайте новый WorkerPool")
        self._config = parallel_config(backend=self.backend, n_jobs=self.n_jobs)
        self._config.__enter__()
        logger.info(f"Worker pool registered: backend={self.backend}, n_jobs={self.n_jobs}")
        return self

    def stop(self) -> None:
        if self._config is None:
            return
        self._config.__exit__(None, None, None)
        self._config = None
        self._stopped = True
        if self.backend == "loky":
            from joblib.externals.loky import reusable_executor

            # Останавливаем только уже созданный исполнитель
            executor = reusable_executor._executor
            if executor is not None:
                executor.shutdown(wait=True)
        logger.info("Worker pool shut down")

    def __enter__(self) -> "WorkerPool":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
