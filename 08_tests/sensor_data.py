"""
Генератор синтетических данных в формате pml-training.csv / pml-testing.csv.

Используется в тестах вместо загрузки реального датасета по сети.
"""

import numpy as np
import pandas as pd

CLASSES = ["A", "B", "C", "D", "E"]

# Признаки, линейно связанные с кодом класса (1..5)
STRONG_FEATURES = {
    "roll_belt": 2.0,
    "pitch_forearm": -1.5,
    "accel_arm_x": 1.0,
    "magnet_dumbbell_y": 3.0,
}
# Ровно нулевая корреляция с кодом класса: внутри каждого класса чередуются +1/-1
ZERO_CORR_FEATURE = "gyros_belt_x"
NOISE_FEATURE = "total_accel_forearm"
SPARSE_FEATURE = "kurtosis_roll_belt"          # 95% пропусков
BORDERLINE_FEATURE = "amplitude_pitch_arm"     # ровно 90% непустых
META_COLUMNS = ["user_name", "raw_timestamp_part_1", "cvtd_timestamp", "new_window", "num_window"]


class SensorDataGenerator:
    """Генератор тестовых таблиц датчиков."""

    @staticmethod
    def create_training_table(n_per_class=100, seed=42, noise=0.5):
        """Обучающая таблица: n_per_class строк на каждый класс A..E (n_per_class чётное)."""
        assert n_per_class % 2 == 0, "n_per_class должен быть чётным"
        rng = np.random.RandomState(seed)
        labels = np.repeat(CLASSES, n_per_class)
        codes = np.repeat(np.arange(1, len(CLASSES) + 1), n_per_class).astype(float)
        n = len(labels)

        df = pd.DataFrame(index=pd.RangeIndex(n))
        df["user_name"] = rng.choice(["adelmo", "carlitos", "pedro"], size=n)
        df["raw_timestamp_part_1"] = 1322489600 + np.arange(n)
        df["cvtd_timestamp"] = "05/12/2011 11:23"
        df["new_window"] = "no"
        df["num_window"] = np.arange(n) // 10

        for name, slope in STRONG_FEATURES.items():
            df[name] = slope * codes + rng.normal(0.0, noise, n)
        df[ZERO_CORR_FEATURE] = np.tile([1.0, -1.0], n // 2)
        df[NOISE_FEATURE] = rng.normal(0.0, 1.0, n)

        sparse = np.full(n, np.nan)
        sparse[:: 20] = rng.normal(0.0, 1.0, len(sparse[:: 20]))
        df[SPARSE_FEATURE] = sparse

        borderline = rng.normal(0.0, 1.0, n)
        borderline[:: 10] = np.nan
        df[BORDERLINE_FEATURE] = borderline

        df["classe"] = labels
        # Перемешиваем строки, чтобы классы не шли блоками
        return df.sample(frac=1.0, random_state=seed).reset_index(drop=True)

    @staticmethod
    def create_quiz_table(n_rows=20, seed=7):
        """Quiz-таблица: те же колонки без classe, плюс problem_id."""
        train = SensorDataGenerator.create_training_table(n_per_class=20, seed=seed)
        quiz = train.drop(columns=["classe"]).head(n_rows).copy()
        quiz["problem_id"] = np.arange(1, n_rows + 1)
        return quiz

    @staticmethod
    def write_csv(df, path):
        """Пишет CSV в формате pml-*.csv: безымянная колонка номера строки, NA для пропусков."""
        out = df.copy()
        out.insert(0, "", np.arange(1, len(out) + 1))
        out.to_csv(path, index=False, na_rep="NA")
        return path
