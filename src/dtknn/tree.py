# -*- coding: utf-8 -*-
"""
dtknn.tree
==========

Entropy-driven binary decision tree over continuous features.

A node owns the indices of the training rows it is responsible for.  It is
turned into a leaf when it holds at most ``eta`` rows or when its majority
class reaches purity ``pi``; otherwise every feature is scanned for the
threshold with the highest information gain and the rows are split into a
``yes`` branch (``x[feature] < threshold``) and a ``no`` branch.

The per-feature threshold search is independent across features and may run
on a thread pool (``n_jobs``); the reduction over features is performed in
feature order, so the resulting tree does not depend on ``n_jobs``.

The module also exposes :class:`EntropyTreeClassifier`, a scikit-learn style
estimator wrapping :func:`build_tree`.
"""

# -----------------------------------------------------------------------------

from __future__ import annotations

import os
from collections.abc import Hashable
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from loguru import logger
from sklearn.base import BaseEstimator, ClassifierMixin

from .dataset import Dataset


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _entropy_rows(counts: np.ndarray) -> np.ndarray:
    counts = np.atleast_2d(np.asarray(counts, dtype=float))
    tot = counts.sum(axis=1, keepdims=True)
    p = np.divide(counts, tot, out=np.zeros_like(counts), where=tot > 0)
    # 0 * log2(0) is taken as 0
    logp = np.log2(p, out=np.zeros_like(p), where=p > 0)
    return -(p * logp).sum(axis=1)


def entropy(counts) -> float:
    """Base-2 Shannon entropy of a vector of class counts."""
    return float(_entropy_rows(counts)[0]) + 0.0


def majority_class(labels: np.ndarray, rows) -> int:
    """Most frequent class code among ``rows``; the lowest code wins ties."""
    rows = np.asarray(rows, dtype=np.intp)
    if rows.size == 0:
        raise ValueError("majority class of an empty row set is undefined")
    return int(np.argmax(np.bincount(labels[rows])))


def purity(labels: np.ndarray, rows) -> float:
    """Fraction of ``rows`` belonging to their majority class."""
    rows = np.asarray(rows, dtype=np.intp)
    if rows.size == 0:
        raise ValueError("purity of an empty row set is undefined")
    counts = np.bincount(labels[rows])
    return float(counts.max() / rows.size)


def _resolve_jobs(n_jobs: int | None) -> int:
    if n_jobs is None or n_jobs == 0:
        return 1
    if n_jobs < 0:
        return max(1, (os.cpu_count() or 1) + 1 + n_jobs)
    return int(n_jobs)


# -----------------------------------------------------------------------------
# Split evaluation
# -----------------------------------------------------------------------------
def evaluate_split(features: np.ndarray, labels: np.ndarray, rows, dimension: int):
    """
    Find the information-gain-optimal binary threshold on one feature.

    The rows are sorted (stably) by their value on ``dimension``.  A candidate
    threshold lies halfway between every pair of consecutive distinct values;
    the rows below it form the ``yes`` side.  The gain of a candidate is the
    entropy of the whole row set minus the entropies of both sides, each
    weighted by its share of the rows.

    Parameters
    ----------
    features : ndarray of shape (n_rows, n_features)
        Shared feature matrix.
    labels : ndarray of shape (n_rows,)
        Shared class codes.
    rows : array-like of int
        Indices of the rows to split.
    dimension : int
        Feature to split on.

    Returns
    -------
    (threshold, gain) : tuple of float, or None
        The first candidate with maximal gain, or ``None`` when every row has
        the same value on ``dimension``.
    """
    rows = np.asarray(rows, dtype=np.intp)
    if rows.size < 2:
        return None
    values = features[rows, dimension]
    order = np.argsort(values, kind="stable")
    v = values[order]
    y = labels[rows][order]

    bd = np.nonzero(v[:-1] != v[1:])[0]
    if bd.size == 0:
        return None

    n_classes = int(y.max()) + 1
    M = np.zeros((y.shape[0], n_classes), dtype=float)
    M[np.arange(y.shape[0]), y] = 1.0
    SW = M.cumsum(axis=0)
    total = SW[-1]

    yes = SW[bd]
    no = total - yes
    n = float(y.shape[0])
    n_yes = yes.sum(axis=1)
    n_no = n - n_yes
    gains = entropy(total) - (n_yes / n) * _entropy_rows(yes) - (n_no / n) * _entropy_rows(no)
    # round-off can push a no-information split a hair below zero
    gains = np.maximum(gains, 0.0)

    best = int(np.argmax(gains))
    j = bd[best]
    threshold = v[j] + (v[j + 1] - v[j]) / 2.0
    return float(threshold), float(gains[best])


# -----------------------------------------------------------------------------
# Node
# -----------------------------------------------------------------------------
class TreeNode:
    """A node of a :class:`DecisionTree`.

    Attributes
    ----------
    rows : ndarray of int
        Indices into the training dataset of the rows this node covers.
    class_distribution : ndarray of shape (n_classes,)
        Count of ``rows`` per class code.
    predicted_class : int
        Majority class code of ``rows``.
    is_leaf : bool
        True for terminal nodes.
    feature_index, threshold, gain
        Split of an internal node; ``None`` on leaves.
    children : dict
        ``{"yes": TreeNode, "no": TreeNode}`` for internal nodes, empty on
        leaves.  ``yes`` holds the rows with ``x[feature_index] < threshold``.
    """

    def __init__(self, rows: np.ndarray, class_distribution: np.ndarray, predicted_class: int):
        self.rows = rows
        self.class_distribution = class_distribution
        self.predicted_class = predicted_class
        self.is_leaf: bool = True
        self.feature_index: int | None = None
        self.threshold: float | None = None
        self.gain: float | None = None
        self.children: dict = {}

    def __repr__(self) -> str:
        if self.is_leaf:
            return f"TreeNode(leaf, class={self.predicted_class}, n={len(self.rows)})"
        return (f"TreeNode(X[{self.feature_index}] < {self.threshold:.4f}, "
                f"n={len(self.rows)})")


# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------
class _TreeBuilder:
    """Grows the nodes of one tree over a fixed dataset."""

    def __init__(self, dataset: Dataset, eta: int, pi: float, executor: ThreadPoolExecutor | None):
        self.dataset = dataset
        self.eta = eta
        self.pi = pi
        self.executor = executor
        self.n_classes = int(dataset.labels.max()) + 1 if dataset.n_rows else 0

    def grow(self, rows: np.ndarray) -> TreeNode:
        labels = self.dataset.labels
        if rows.size == 0:
            raise ValueError("cannot grow a tree node over an empty row set")
        dist = np.bincount(labels[rows], minlength=self.n_classes)
        node = TreeNode(rows, dist, int(np.argmax(dist)))

        # stopping rule
        if rows.size <= self.eta or dist.max() / rows.size >= self.pi:
            return node

        split = self._best_split(rows)
        if split is None:
            # every remaining row is identical on every feature
            return node
        dim, thr, gain = split

        vals = self.dataset.features[rows, dim]
        yes_mask = vals < thr
        yes_rows, no_rows = rows[yes_mask], rows[~yes_mask]
        if yes_rows.size == 0 or no_rows.size == 0:
            # midpoint rounded onto one of its neighbours
            return node

        logger.trace("Split chosen", feature=dim, threshold=thr, gain=gain,
                     yes=int(yes_rows.size), no=int(no_rows.size))
        node.is_leaf = False
        node.feature_index = dim
        node.threshold = thr
        node.gain = gain
        node.children["yes"] = self.grow(yes_rows)
        node.children["no"] = self.grow(no_rows)
        return node

    def _best_split(self, rows: np.ndarray):
        X, y = self.dataset.features, self.dataset.labels
        dims = range(self.dataset.n_features)
        if self.executor is None:
            results = [evaluate_split(X, y, rows, d) for d in dims]
        else:
            results = list(self.executor.map(lambda d: evaluate_split(X, y, rows, d), dims))

        best = None
        for dim, res in enumerate(results):
            if res is None:
                continue
            thr, gain = res
            if best is None or gain > best[2]:
                best = (dim, thr, gain)
        return best


def build_tree(dataset: Dataset, rows=None, *, eta: int = 15, pi: float = 1.0,
               n_jobs: int | None = None) -> DecisionTree:
    """
    Induce a decision tree on a subset of a dataset.

    Parameters
    ----------
    dataset : Dataset
        Shared training data; only referenced, never copied.
    rows : array-like of int, optional
        Row indices to train on.  Defaults to every row.
    eta : int, default=15
        Nodes with at most ``eta`` rows become leaves.
    pi : float, default=1.0
        Nodes whose majority class makes up at least ``pi`` of their rows
        become leaves.
    n_jobs : int or None, default=None
        Threads used for the per-feature threshold search.  ``None`` or ``1``
        searches sequentially; negative values count back from the number of
        CPUs (``-1`` uses all of them).

    Returns
    -------
    DecisionTree

    Raises
    ------
    ValueError
        If ``eta`` is negative, ``pi`` lies outside ``[0, 1]`` or ``rows`` is
        empty.
    """
    eta = int(eta)
    pi = float(pi)
    if eta < 0:
        raise ValueError(f"eta must be non-negative, got {eta}")
    if not 0.0 <= pi <= 1.0:
        raise ValueError(f"pi must be in [0, 1], got {pi}")
    if rows is None:
        rows = np.arange(dataset.n_rows)
    rows = np.asarray(rows, dtype=np.intp)
    if rows.size == 0:
        raise ValueError("cannot build a tree from an empty row set")

    workers = _resolve_jobs(n_jobs)
    if workers == 1 or dataset.n_features < 2:
        root = _TreeBuilder(dataset, eta, pi, None).grow(rows)
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            root = _TreeBuilder(dataset, eta, pi, executor).grow(rows)

    tree = DecisionTree(dataset, root)
    logger.debug("Tree built", rows=int(rows.size), depth=tree.depth, leaves=tree.n_leaves)
    return tree


# -----------------------------------------------------------------------------
# Tree
# -----------------------------------------------------------------------------
class DecisionTree:
    """A fitted decision tree bound to the dataset it was trained on.

    Class codes stored in the nodes are turned into names through
    ``dataset.label_mapping``.
    """

    def __init__(self, dataset: Dataset, root: TreeNode):
        self.dataset = dataset
        self.root = root

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------
    def _leaf_for(self, point) -> TreeNode:
        x = np.asarray(point, dtype=float)
        if x.shape != (self.dataset.n_features,):
            raise ValueError(
                f"point has shape {x.shape}, expected ({self.dataset.n_features},)"
            )
        node = self.root
        while not node.is_leaf:
            branch = "yes" if x[node.feature_index] < node.threshold else "no"
            node = node.children[branch]
        return node

    def predict_code(self, point) -> int:
        return self._leaf_for(point).predicted_class

    def predict(self, point) -> Hashable:
        """Class label of the leaf ``point`` falls into (see ``Dataset.class_name``)."""
        return self.dataset.class_name(self.predict_code(point))

    def predict_many(self, points) -> list:
        return [self.predict(p) for p in np.atleast_2d(np.asarray(points, dtype=float))]

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    def leaves(self) -> list[TreeNode]:
        out, stack = [], [self.root]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                out.append(node)
            else:
                stack.append(node.children["no"])
                stack.append(node.children["yes"])
        return out

    @property
    def n_leaves(self) -> int:
        return len(self.leaves())

    @property
    def depth(self) -> int:
        """Number of edges on the longest root-to-leaf path."""
        best, stack = 0, [(self.root, 0)]
        while stack:
            node, d = stack.pop()
            if node.is_leaf:
                best = max(best, d)
            else:
                stack.append((node.children["yes"], d + 1))
                stack.append((node.children["no"], d + 1))
        return best

    def _feature_name(self, idx: int, fn) -> str:
        if fn is not None and 0 <= idx < len(fn):
            return str(fn[idx])
        return f"X[{idx}]"

    def describe(self, feature_names=None) -> str:
        """
        Pre-order text dump of the tree, indented two spaces per level.

        Internal nodes print as ``if X[d] < t:`` followed by their ``yes``
        subtree, then ``else:`` and their ``no`` subtree; leaves print as
        ``Predict <class name> | n=<rows>``.
        """
        lines: list[str] = []
        self._describe_node(self.root, "", feature_names, lines)
        return "\n".join(lines)

    def _describe_node(self, node: TreeNode, indent: str, fn, lines: list[str]):
        if node.is_leaf:
            pred = self.dataset.class_name(node.predicted_class)
            lines.append(f"{indent}Predict {pred} | n={len(node.rows)}")
            return
        name = self._feature_name(node.feature_index, fn)
        lines.append(f"{indent}if {name} < {node.threshold:.4f}:")
        self._describe_node(node.children["yes"], indent + "  ", fn, lines)
        lines.append(f"{indent}else:")
        self._describe_node(node.children["no"], indent + "  ", fn, lines)

    def print_tree(self, feature_names=None):
        print(self.describe(feature_names))

    def export_rules(self, feature_names=None) -> list[str]:
        """One ``cond AND cond => class`` rule per leaf, in pre-order."""
        rules: list[str] = []
        self._collect_rules(self.root, [], rules, feature_names)
        return rules

    def _collect_rules(self, node: TreeNode, parts, rules, fn):
        if node.is_leaf:
            body = " AND ".join(parts) if parts else "<root>"
            rules.append(f"{body} => {self.dataset.class_name(node.predicted_class)}")
            return
        name = self._feature_name(node.feature_index, fn)
        yes = f"{name} < {node.threshold:.4f}"
        no = f"{name} >= {node.threshold:.4f}"
        self._collect_rules(node.children["yes"], parts + [yes], rules, fn)
        self._collect_rules(node.children["no"], parts + [no], rules, fn)


# -----------------------------------------------------------------------------
# Classifier
# -----------------------------------------------------------------------------
class EntropyTreeClassifier(ClassifierMixin, BaseEstimator):
    """
    Binary decision tree classifier split by information gain.

    Parameters
    ----------
    eta : int, default=15
        Minimum leaf size: a node with at most ``eta`` training rows is not
        split further.
    pi : float, default=1.0
        Minimum leaf purity: a node whose majority class reaches this fraction
        of its rows is not split further.  The default only stops at pure
        nodes.
    n_jobs : int or None, default=None
        Threads for the per-feature threshold search, see :func:`build_tree`.
    feature_names : list[str] or None, default=None
        Names used by :meth:`print_tree` and :meth:`export_rules`.

    Attributes
    ----------
    tree_ : DecisionTree
        The fitted tree.
    classes_ : ndarray
        Class labels seen during ``fit``.
    n_features_in_ : int
        Number of features seen during ``fit``.

    Notes
    -----
    There is no pruning and no depth limit; ``eta`` and ``pi`` are the only
    stopping criteria.
    """

    def __init__(self, *, eta: int = 15, pi: float = 1.0, n_jobs: int | None = None,
                 feature_names: list[str] | None = None):
        self.eta = eta
        self.pi = pi
        self.n_jobs = n_jobs
        self.feature_names = feature_names

    def fit(self, X, y):
        X = np.asarray(X, dtype=float)
        y = np.asarray(y)
        if X.ndim != 2:
            raise ValueError(f"X must be 2-dimensional, got shape {X.shape}")
        if len(X) != len(y):
            raise ValueError("X and y must have the same number of rows")
        if self.feature_names is not None and len(self.feature_names) != X.shape[1]:
            raise ValueError("feature_names length must match X.shape[1]")
        dataset = Dataset.from_arrays(X, y)
        self.tree_ = build_tree(dataset, eta=self.eta, pi=self.pi, n_jobs=self.n_jobs)
        self.classes_ = np.unique(y)
        self.n_features_in_ = X.shape[1]
        return self

    def _check_fitted(self):
        if getattr(self, "tree_", None) is None:
            raise ValueError("Estimator not fitted. Call fit(...) first.")

    def predict(self, X):
        """
        Predict class labels for the provided samples.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)

        Returns
        -------
        ndarray of shape (n_samples,)
            Labels as passed to ``fit``.

        Raises
        ------
        ValueError
            If the estimator has not been fitted or ``X`` has the wrong number
            of features.
        """
        self._check_fitted()
        X = np.atleast_2d(np.asarray(X, dtype=float))
        return np.array([self.tree_.predict(x) for x in X])

    def print_tree(self):
        self._check_fitted()
        self.tree_.print_tree(self.feature_names)

    def export_rules(self) -> list[str]:
        self._check_fitted()
        return self.tree_.export_rules(self.feature_names)
