# -*- coding: utf-8 -*-
"""
dtknn.knn
=========

Flat k-nearest-neighbours classification by squared Euclidean distance.

Every query is compared against every candidate row; there is no index
structure.  The ``k`` closest rows (ties resolved by row order) vote with
their class names.
"""

from __future__ import annotations

from collections import Counter

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin

from .dataset import Dataset


# -----------------------------------------------------------------------------
# Point helpers
# -----------------------------------------------------------------------------
def squared_distance(a, b) -> float:
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return float(np.sum((a - b) ** 2))


def euclidean_distance(a, b) -> float:
    return float(np.sqrt(squared_distance(a, b)))


def cosine_similarity(a, b) -> float:
    """Cosine of the angle between ``a`` and ``b``; ``nan`` if either is zero."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return float("nan")
    return float(np.dot(a, b) / denom)


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------
def nearest_rows(dataset: Dataset, query, k: int, rows=None) -> np.ndarray:
    """Indices of the ``k`` rows closest to ``query``, nearest first."""
    q = np.asarray(query, dtype=float)
    if q.shape != (dataset.n_features,):
        raise ValueError(f"query has shape {q.shape}, expected ({dataset.n_features},)")
    if k < 0:
        raise ValueError(f"k must be non-negative, got {k}")
    if rows is None:
        rows = np.arange(dataset.n_rows)
    rows = np.asarray(rows, dtype=np.intp)
    d2 = np.sum((dataset.features[rows] - q) ** 2, axis=1)
    order = np.argsort(d2, kind="stable")
    return rows[order[:k]]


def k_nearest_neighbors(dataset: Dataset, query, k: int, rows=None):
    """
    Classify ``query`` by plurality vote of its ``k`` nearest rows.

    Parameters
    ----------
    dataset : Dataset
        Reference rows and their classes.
    query : array-like of shape (n_features,)
        Point to classify.
    k : int
        Number of neighbours.  Values above the number of candidate rows use
        every row.
    rows : array-like of int, optional
        Restrict the candidates to these rows (e.g. a training fold).

    Returns
    -------
    hashable or None
        The most common class label among the neighbours (see
        ``Dataset.class_name``), or ``None`` when
        ``k == 0`` or there are no candidate rows.  On a tie the class whose
        first vote came from the closest neighbour wins.
    """
    neighbours = nearest_rows(dataset, query, k, rows)
    if neighbours.size == 0:
        return None
    # Counter keeps first-insertion order among equal counts
    votes = Counter(dataset.class_name(c) for c in dataset.labels[neighbours])
    return votes.most_common(1)[0][0]


class KNNClassifier(ClassifierMixin, BaseEstimator):
    """
    k-nearest-neighbours classifier (scikit-learn style).

    Parameters
    ----------
    k : int, default=1
        Number of neighbours voting on each prediction.
    """

    def __init__(self, *, k: int = 1):
        self.k = k

    def fit(self, X, y):
        if int(self.k) < 1:
            raise ValueError(f"k must be at least 1, got {self.k}")
        self.dataset_ = Dataset.from_arrays(X, y)
        self.classes_ = np.unique(np.asarray(y))
        self.n_features_in_ = self.dataset_.n_features
        return self

    def predict(self, X):
        if getattr(self, "dataset_", None) is None:
            raise ValueError("Estimator not fitted. Call fit(...) first.")
        X = np.atleast_2d(np.asarray(X, dtype=float))
        return np.array([k_nearest_neighbors(self.dataset_, x, int(self.k)) for x in X])
