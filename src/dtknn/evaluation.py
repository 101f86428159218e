# -*- coding: utf-8 -*-
"""
dtknn.evaluation
================

Per-class F1 scoring and k-fold cross-validation of the decision tree against
the k-nearest-neighbours baseline.

Each fold trains a tree on the rows outside the fold, classifies the held-out
rows with the tree and with k-NN (searching only the training rows), and
scores both by macro-F1 over the classes present in the held-out labels.  The
final report averages the per-fold scores of each classifier.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .dataset import Dataset
from .knn import k_nearest_neighbors
from .tree import _resolve_jobs, build_tree


# -----------------------------------------------------------------------------
# F-scores
# -----------------------------------------------------------------------------
@dataclass
class ConfusionCounts:
    """True-positive, false-positive and false-negative counts of one class.

    ``fp`` counts rows wrongly predicted as the class and ``fn`` rows of the
    class predicted as something else.  Every ratio that would divide by zero
    is reported as ``0.0``.
    """

    tp: int = 0
    fp: int = 0
    fn: int = 0

    @property
    def precision(self) -> float:
        denom = self.tp + self.fp
        return self.tp / denom if denom else 0.0

    @property
    def recall(self) -> float:
        denom = self.tp + self.fn
        return self.tp / denom if denom else 0.0

    @property
    def f1(self) -> float:
        p, r = self.precision, self.recall
        if p + r == 0:
            return 0.0
        return 2.0 * p * r / (p + r)


def class_scores(actual, predicted) -> dict:
    """
    Confusion counts for every class observed in ``actual``.

    Parameters
    ----------
    actual, predicted : sequence
        Paired ground-truth and predicted labels.

    Returns
    -------
    dict
        ``{label: ConfusionCounts}`` in first-seen order of ``actual``.
        Predictions of labels absent from ``actual`` only count against the
        true class.

    Raises
    ------
    ValueError
        If the sequences differ in length.
    """
    actual = list(actual)
    predicted = list(predicted)
    if len(actual) != len(predicted):
        raise ValueError(f"got {len(actual)} actual labels but {len(predicted)} predictions")
    counts = {a: ConfusionCounts() for a in actual}
    for a, p in zip(actual, predicted):
        if a == p:
            counts[a].tp += 1
            continue
        counts[a].fn += 1
        if p in counts:
            counts[p].fp += 1
    return counts


def f1_scores(actual, predicted) -> dict:
    return {label: c.f1 for label, c in class_scores(actual, predicted).items()}


def macro_f1(actual, predicted) -> float:
    """Unweighted mean F1 over the classes observed in ``actual`` (0.0 if empty)."""
    scores = f1_scores(actual, predicted)
    if not scores:
        return 0.0
    return float(np.mean(list(scores.values())))


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------
class CrossValidationConfig(BaseModel):
    """Parameters of a cross-validation run.

    Attributes:
        eta (int): Minimum leaf size of the decision tree.
        pi (float): Minimum leaf purity of the decision tree, in ``[0, 1]``.
        k (int): Neighbours consulted by k-NN.
        kfold (int): Number of folds, at least 2.
        print_trees (bool): Print each fold's tree to stdout.
        n_jobs (int | None): Threads used to run folds concurrently. ``None``
            or ``1`` runs them one after another; negative values count back
            from the number of CPUs.
        tree_jobs (int | None): Threads used by each tree's threshold search.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    eta: int = Field(default=15, ge=0, description="Minimum leaf size.")
    pi: float = Field(default=1.0, ge=0.0, le=1.0, description="Minimum leaf purity.")
    k: int = Field(default=1, ge=1, description="Neighbours consulted by k-NN.")
    kfold: int = Field(default=5, ge=2, description="Number of cross-validation folds.")
    print_trees: bool = Field(default=False, description="Print each fold's tree.")
    n_jobs: int | None = Field(default=None, description="Threads running folds concurrently.")
    tree_jobs: int | None = Field(default=None, description="Threads per tree threshold search.")


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------
@dataclass
class FoldResult:
    """Scores of both classifiers on one held-out fold."""

    fold: int
    n_train: int
    n_test: int
    tree_f1: float
    knn_f1: float
    tree_class_f1: dict = field(default_factory=dict)
    knn_class_f1: dict = field(default_factory=dict)
    tree_depth: int = 0
    tree_leaves: int = 0
    tree_description: str | None = None


@dataclass
class CrossValidationReport:
    config: CrossValidationConfig
    folds: list[FoldResult] = field(default_factory=list)

    @property
    def mean_tree_f1(self) -> float:
        return float(np.mean([f.tree_f1 for f in self.folds])) if self.folds else 0.0

    @property
    def mean_knn_f1(self) -> float:
        return float(np.mean([f.knn_f1 for f in self.folds])) if self.folds else 0.0

    def summary(self) -> str:
        c = self.config
        lines = [f"{c.kfold}-fold cross-validation (eta={c.eta}, pi={c.pi}, k={c.k})"]
        for f in self.folds:
            lines.append(
                f"  fold {f.fold}: tree F1={f.tree_f1:.4f} (depth={f.tree_depth}, "
                f"leaves={f.tree_leaves})  knn F1={f.knn_f1:.4f}  "
                f"[train={f.n_train}, test={f.n_test}]"
            )
        lines.append(f"Decision tree mean macro-F1: {self.mean_tree_f1:.4f}")
        lines.append(f"k-NN mean macro-F1:          {self.mean_knn_f1:.4f}")
        return "\n".join(lines)


# -----------------------------------------------------------------------------
# Cross-validation
# -----------------------------------------------------------------------------
def run_fold(dataset: Dataset, fold_index: int, config: CrossValidationConfig) -> FoldResult:
    """Train and score both classifiers on fold ``fold_index``."""
    train, test = dataset.partition(config.kfold, fold_index)
    if train.size == 0:
        raise ValueError(f"fold {fold_index} leaves no training rows")

    tree = build_tree(dataset, train, eta=config.eta, pi=config.pi, n_jobs=config.tree_jobs)
    actual = [dataset.class_name(c) for c in dataset.labels[test]]
    tree_pred = [tree.predict(dataset.features[i]) for i in test]
    knn_pred = [k_nearest_neighbors(dataset, dataset.features[i], config.k, rows=train)
                for i in test]

    result = FoldResult(
        fold=fold_index,
        n_train=int(train.size),
        n_test=int(test.size),
        tree_f1=macro_f1(actual, tree_pred),
        knn_f1=macro_f1(actual, knn_pred),
        tree_class_f1=f1_scores(actual, tree_pred),
        knn_class_f1=f1_scores(actual, knn_pred),
        tree_depth=tree.depth,
        tree_leaves=tree.n_leaves,
        tree_description=tree.describe() if config.print_trees else None,
    )
    logger.info("Fold scored", fold=fold_index, tree_f1=round(result.tree_f1, 4),
                knn_f1=round(result.knn_f1, 4))
    return result


def cross_validate(dataset: Dataset, config: CrossValidationConfig | None = None,
                   **overrides) -> CrossValidationReport:
    """
    Run k-fold cross-validation of the decision tree and k-NN.

    Parameters
    ----------
    dataset : Dataset
        Data to partition; never modified.
    config : CrossValidationConfig, optional
        Run parameters.  Defaults to ``CrossValidationConfig()``.
    **overrides
        Field values replacing those of ``config``
        (e.g. ``cross_validate(ds, eta=1, kfold=10)``).

    Returns
    -------
    CrossValidationReport
        Per-fold results in fold order and their means.

    Raises
    ------
    ValueError
        If ``kfold`` exceeds the number of rows, or a parameter is invalid.
    """
    if config is None:
        config = CrossValidationConfig(**overrides)
    elif overrides:
        config = CrossValidationConfig(**{**config.model_dump(), **overrides})
    if config.kfold > dataset.n_rows:
        raise ValueError(f"kfold={config.kfold} exceeds the {dataset.n_rows} rows available")

    folds = range(config.kfold)
    workers = min(_resolve_jobs(config.n_jobs), config.kfold)
    if workers == 1:
        results = [run_fold(dataset, i, config) for i in folds]
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(lambda i: run_fold(dataset, i, config), folds))

    report = CrossValidationReport(config=config)
    for res in results:
        report.folds.append(res)
        if config.print_trees:
            print(f"Fold {res.fold} tree:")
            print(res.tree_description)
    logger.info("Cross-validation finished", tree_f1=round(report.mean_tree_f1, 4),
                knn_f1=round(report.mean_knn_f1, 4))
    return report
