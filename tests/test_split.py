import numpy as np
import pytest
from dtknn.tree import entropy, evaluate_split, majority_class, purity


def _column(values, labels):
    X = np.asarray(values, dtype=float).reshape(-1, 1)
    y = np.asarray(labels, dtype=np.int64)
    return X, y, np.arange(len(y))


def test_entropy_known_values():
    assert entropy([4, 0]) == 0.0
    assert entropy([2, 2]) == pytest.approx(1.0)
    assert entropy([1, 1, 1, 1]) == pytest.approx(2.0)
    # empty classes contribute nothing
    assert entropy([3, 0, 3]) == pytest.approx(1.0)


def test_perfect_split_has_full_gain():
    X, y, rows = _column([1, 2, 3, 4], [0, 0, 1, 1])
    thr, gain = evaluate_split(X, y, rows, 0)
    assert thr == pytest.approx(2.5)
    assert gain == pytest.approx(1.0)


def test_threshold_is_midpoint_of_neighbours():
    X, y, rows = _column([0.0, 10.0], [0, 1])
    thr, _ = evaluate_split(X, y, rows, 0)
    assert thr == 5.0


def test_candidates_only_between_distinct_values():
    # rows are given out of order and with repeated values
    X, y, rows = _column([2, 1, 2, 1], [1, 0, 1, 0])
    thr, gain = evaluate_split(X, y, rows, 0)
    assert thr == pytest.approx(1.5)
    assert gain == pytest.approx(1.0)


def test_constant_dimension_is_unsplittable():
    X, y, rows = _column([3.0, 3.0, 3.0], [0, 1, 0])
    assert evaluate_split(X, y, rows, 0) is None


def test_single_row_is_unsplittable():
    X, y, _ = _column([1.0, 2.0], [0, 1])
    assert evaluate_split(X, y, [1], 0) is None


def test_split_without_class_separation_has_zero_gain():
    X, y, rows = _column([1, 2, 3, 4], [0, 0, 0, 0])
    thr, gain = evaluate_split(X, y, rows, 0)
    assert gain == 0.0
    # first candidate wins when all gains are equal
    assert thr == pytest.approx(1.5)


def test_only_active_rows_are_considered():
    X, y, _ = _column([1, 2, 3, 4, 100], [0, 0, 1, 1, 0])
    thr, gain = evaluate_split(X, y, [0, 1, 2, 3], 0)
    assert thr == pytest.approx(2.5)
    assert gain == pytest.approx(1.0)


def test_gain_is_never_negative():
    rng = np.random.default_rng(0)
    X = rng.normal(size=(60, 5))
    y = rng.integers(0, 3, size=60)
    for _ in range(20):
        rows = rng.choice(60, size=25, replace=False)
        for d in range(X.shape[1]):
            res = evaluate_split(X, y, rows, d)
            assert res is not None
            assert res[1] >= 0.0


def test_gain_matches_hand_computation():
    # yes side {0}, no side {0, 1, 1}
    X, y, rows = _column([1, 2, 3, 4], [0, 1, 1, 0])
    thr, gain = evaluate_split(X, y, rows, 0)
    full = 1.0
    no_side = -(1 / 3) * np.log2(1 / 3) - (2 / 3) * np.log2(2 / 3)
    assert gain == pytest.approx(full - 0.75 * no_side)
    assert thr in (pytest.approx(1.5), pytest.approx(3.5))


def test_majority_class_prefers_lowest_code_on_ties():
    y = np.array([1, 0, 1, 0, 2])
    assert majority_class(y, [0, 1, 2, 3]) == 0
    assert majority_class(y, [0, 2, 4]) == 1


def test_purity():
    y = np.array([0, 0, 0, 1])
    assert purity(y, [0, 1, 2, 3]) == pytest.approx(0.75)
    assert purity(y, [3]) == 1.0


def test_empty_row_set_is_rejected():
    y = np.array([0, 1])
    with pytest.raises(ValueError):
        majority_class(y, [])
    with pytest.raises(ValueError):
        purity(y, [])
