# -*- coding: utf-8 -*-
"""
dtknn.dataset
=============

In-memory labelled dataset shared read-only by the classifiers, the
cross-validation fold partition and a loader for the header-prefixed,
optionally xz-compressed, comma-separated tables the data ships in.
"""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd
from loguru import logger


# -----------------------------------------------------------------------------
# Label encoding
# -----------------------------------------------------------------------------
class LabelEncoding:
    """Assigns dense zero-based integer codes to class names in first-seen order."""

    def __init__(self):
        self._codes: dict = {}

    def encode(self, name) -> int:
        code = self._codes.get(name)
        if code is None:
            code = len(self._codes)
            self._codes[name] = code
        return code

    def encode_all(self, names) -> np.ndarray:
        return np.fromiter((self.encode(n) for n in names), dtype=np.int64)

    def mapping(self) -> dict:
        return {code: name for name, code in self._codes.items()}

    def __len__(self) -> int:
        return len(self._codes)


# -----------------------------------------------------------------------------
# Dataset
# -----------------------------------------------------------------------------
@dataclass(frozen=True, eq=False)
class Dataset:
    """Immutable feature matrix, label vector and code-to-name mapping.

    Parameters
    ----------
    features : array-like of shape (n_rows, n_features)
        Real-valued feature rows.
    labels : array-like of shape (n_rows,)
        Dense zero-based class codes.
    label_mapping : dict[int, Hashable]
        Class label for every code present in ``labels``: the original label
        object given to ``from_arrays`` (a ``str`` when read by
        ``load_dataset``).

    Notes
    -----
    The arrays are stored as read-only numpy arrays; tree nodes and the k-NN
    search refer to rows by index and never copy or modify them.
    """

    features: np.ndarray
    labels: np.ndarray
    label_mapping: dict = field(default_factory=dict)

    def __post_init__(self):
        X = np.array(self.features, dtype=float)
        y = np.array(self.labels, dtype=np.int64)
        if X.ndim != 2:
            raise ValueError(f"features must be 2-dimensional, got shape {X.shape}")
        if y.ndim != 1:
            raise ValueError(f"labels must be 1-dimensional, got shape {y.shape}")
        if len(X) != len(y):
            raise ValueError(f"features has {len(X)} rows but labels has {len(y)}")
        if y.size and y.min() < 0:
            raise ValueError("labels must be non-negative class codes")
        mapping = dict(self.label_mapping)
        missing = sorted(set(np.unique(y).tolist()) - set(mapping))
        if missing:
            raise ValueError(f"label_mapping has no entry for class codes {missing}")
        X.setflags(write=False)
        y.setflags(write=False)
        object.__setattr__(self, "features", X)
        object.__setattr__(self, "labels", y)
        object.__setattr__(self, "label_mapping", mapping)

    @classmethod
    def from_arrays(cls, X, y) -> Dataset:
        """Build a dataset from arbitrary class labels, coded in first-seen order."""
        encoding = LabelEncoding()
        codes = encoding.encode_all(np.asarray(y).tolist())
        return cls(np.asarray(X, dtype=float), codes, encoding.mapping())

    @property
    def n_rows(self) -> int:
        return int(self.features.shape[0])

    @property
    def n_features(self) -> int:
        return int(self.features.shape[1])

    @property
    def n_classes(self) -> int:
        return len(self.label_mapping)

    def class_name(self, code: int) -> Hashable:
        """Original class label of ``code``, as given to ``from_arrays``."""
        return self.label_mapping[int(code)]

    def partition(self, k: int, fold_index: int) -> tuple[np.ndarray, np.ndarray]:
        """Training and held-out row indices of fold ``fold_index`` out of ``k``."""
        return kfold_partition(self.n_rows, k, fold_index)

    def __len__(self) -> int:
        return self.n_rows


def kfold_partition(total_rows: int, k: int, fold_index: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Interleaved k-fold partition of ``range(total_rows)``.

    Row ``i`` is held out in fold ``fold_index`` iff ``i % k == fold_index``;
    every other row is a training row. Across ``fold_index in range(k)`` each
    row is held out exactly once.

    Returns
    -------
    (train, test) : tuple of ndarray
        Ascending row indices.
    """
    if k < 1:
        raise ValueError(f"k must be at least 1, got {k}")
    if not 0 <= fold_index < k:
        raise ValueError(f"fold_index must be in [0, {k}), got {fold_index}")
    if total_rows < 0:
        raise ValueError(f"total_rows must be non-negative, got {total_rows}")
    idx = np.arange(total_rows)
    held_out = (idx % k) == fold_index
    return idx[~held_out], idx[held_out]


# -----------------------------------------------------------------------------
# Loading
# -----------------------------------------------------------------------------
def _read_table(path) -> pd.DataFrame:
    # compression is inferred from the suffix (.xz, .gz, ...)
    return pd.read_csv(path, header=0, index_col=0, compression="infer")


def load_dataset(features_path, labels_path) -> Dataset:
    """
    Load a dataset from a features table and a labels table.

    Both files are comma-separated with a header line, optionally compressed
    (``.xz`` in the usual distribution). The first column of each is a row
    identifier and is ignored. Rows are aligned by position.

    Parameters
    ----------
    features_path : str or Path
        Table of numeric feature columns.
    labels_path : str or Path
        Table whose first data column holds the class name of each row.

    Returns
    -------
    Dataset
        Features as float64, labels coded in first-seen order.

    Raises
    ------
    ValueError
        If a feature value is not numeric or the tables differ in length.
    """
    features = _read_table(Path(features_path))
    labels = _read_table(Path(labels_path))
    if labels.shape[1] < 1:
        raise ValueError(f"{labels_path} has no label column")
    if len(features) != len(labels):
        raise ValueError(
            f"{features_path} has {len(features)} rows but {labels_path} has {len(labels)}"
        )
    try:
        X = features.to_numpy(dtype=float)
    except ValueError as exc:
        raise ValueError(f"{features_path} contains non-numeric feature values") from exc
    encoding = LabelEncoding()
    y = encoding.encode_all(labels.iloc[:, 0].astype(str).tolist())
    dataset = Dataset(X, y, encoding.mapping())
    logger.info(
        "Dataset loaded",
        rows=dataset.n_rows,
        features=dataset.n_features,
        classes=dataset.n_classes,
    )
    return dataset
