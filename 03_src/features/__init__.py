"""
Модули корреляционного анализа и отбора признаков.

- correlation: матрицы коэффициентов и p-value по попарно полным наблюдениям
- feature_selection: отбор признаков по порогам значимости и силы связи с целью
"""

from .correlation import CorrelationResult, compute_correlation_matrices, encode_outcome, outcome_correlations
from .feature_selection import FeatureSelectionResult, SelectionThresholds, select_features

__all__ = [
    'CorrelationResult',
    'compute_correlation_matrices',
    'encode_outcome',
    'outcome_correlations',
    'FeatureSelectionResult',
    'SelectionThresholds',
    'select_features',
]
