import numpy as np
import pytest
from dtknn import Dataset, EntropyTreeClassifier, build_tree


def _clusters():
    """Two well separated clusters labelled 'a' and 'b'."""
    X = np.array([[0, 0], [0, 1], [1, 0], [5, 5], [5, 6], [6, 5]], dtype=float)
    y = np.array(["a", "a", "a", "b", "b", "b"])
    return X, y


def _noisy(seed=0, n=80):
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n, 3))
    y = (X[:, 0] + 0.5 * X[:, 1] + rng.normal(scale=0.7, size=n) > 0).astype(int)
    return Dataset.from_arrays(X, y)


def test_two_clusters_single_split():
    ds = Dataset.from_arrays(*_clusters())
    tree = build_tree(ds, eta=1, pi=1.0)
    assert not tree.root.is_leaf
    # both features separate perfectly; the first one wins the tie
    assert tree.root.feature_index == 0
    assert tree.root.threshold == pytest.approx(3.0)
    assert tree.depth == 1
    assert tree.n_leaves == 2
    assert tree.predict([0.5, 0.5]) == "a"
    assert tree.predict([5.5, 5.5]) == "b"


def test_describe_is_preorder_and_indented():
    ds = Dataset.from_arrays(*_clusters())
    tree = build_tree(ds, eta=1, pi=1.0)
    assert tree.describe() == (
        "if X[0] < 3.0000:\n"
        "  Predict a | n=3\n"
        "else:\n"
        "  Predict b | n=3"
    )
    assert tree.describe(feature_names=["x", "y"]).startswith("if x < 3.0000:")


def test_export_rules_one_per_leaf():
    ds = Dataset.from_arrays(*_clusters())
    rules = build_tree(ds, eta=1, pi=1.0).export_rules()
    assert rules == ["X[0] < 3.0000 => a", "X[0] >= 3.0000 => b"]


def test_perfect_purity_leaves():
    ds = _noisy()
    tree = build_tree(ds, eta=1, pi=1.0)
    for leaf in tree.leaves():
        classes = np.unique(ds.labels[leaf.rows])
        assert len(classes) == 1 or len(leaf.rows) == 1


def test_leaves_partition_training_rows():
    ds = _noisy()
    rows = np.arange(0, ds.n_rows, 2)
    tree = build_tree(ds, rows, eta=3, pi=0.95)
    covered = np.sort(np.concatenate([leaf.rows for leaf in tree.leaves()]))
    np.testing.assert_array_equal(covered, rows)


def test_training_rows_follow_their_leaf():
    ds = _noisy(seed=3)
    tree = build_tree(ds, eta=1, pi=1.0)
    for leaf in tree.leaves():
        for r in leaf.rows:
            assert tree.predict_code(ds.features[r]) == leaf.predicted_class


def test_eta_stops_growth():
    ds = _noisy()
    tree = build_tree(ds, eta=ds.n_rows, pi=1.0)
    assert tree.root.is_leaf
    assert tree.depth == 0


def test_pi_stops_growth():
    X = np.array([[1.0], [2.0], [3.0], [4.0]])
    y = np.array([0, 0, 0, 1])
    tree = build_tree(Dataset.from_arrays(X, y), eta=0, pi=0.75)
    assert tree.root.is_leaf
    assert tree.predict([4.0]) == 0


def test_monotonic_stopping():
    ds = _noisy(seed=1, n=120)
    depths = [build_tree(ds, eta=eta, pi=1.0).depth for eta in (1, 2, 4, 8, 16, 32)]
    assert depths == sorted(depths, reverse=True)
    depths = [build_tree(ds, eta=1, pi=pi).depth for pi in (1.0, 0.95, 0.9, 0.8, 0.6)]
    assert depths == sorted(depths, reverse=True)


def test_identical_rows_fall_back_to_leaf():
    # no feature can separate the rows although the node is impure
    X = np.ones((3, 2))
    y = np.array(["x", "y", "y"])
    tree = build_tree(Dataset.from_arrays(X, y), eta=0, pi=1.0)
    assert tree.root.is_leaf
    assert tree.predict([1.0, 1.0]) == "y"


def test_majority_tie_goes_to_lowest_code():
    X = np.ones((2, 1))
    tree = build_tree(Dataset(X, np.array([1, 0]), {0: "zero", 1: "one"}), eta=0)
    assert tree.predict([1.0]) == "zero"


def test_midpoint_rounding_onto_value_makes_leaf():
    lo = 1.0
    hi = np.nextafter(1.0, 2.0)
    ds = Dataset(np.array([[lo], [hi]]), np.array([0, 1]), {0: "lo", 1: "hi"})
    tree = build_tree(ds, eta=0, pi=1.0)
    assert tree.root.is_leaf


def test_threads_do_not_change_the_tree():
    ds = _noisy(seed=2, n=150)
    sequential = build_tree(ds, eta=2, pi=1.0)
    threaded = build_tree(ds, eta=2, pi=1.0, n_jobs=4)
    assert sequential.describe() == threaded.describe()


def test_prediction_is_idempotent():
    ds = _noisy()
    tree = build_tree(ds, eta=2, pi=1.0)
    point = [0.1, -0.3, 0.7]
    assert tree.predict(point) == tree.predict(point)
    assert tree.predict_many([point, point]) == [tree.predict(point)] * 2


def test_predict_rejects_wrong_dimensionality():
    ds = Dataset.from_arrays(*_clusters())
    tree = build_tree(ds, eta=1)
    with pytest.raises(ValueError):
        tree.predict([1.0, 2.0, 3.0])


def test_invalid_parameters():
    ds = Dataset.from_arrays(*_clusters())
    with pytest.raises(ValueError):
        build_tree(ds, eta=-1)
    with pytest.raises(ValueError):
        build_tree(ds, pi=1.5)
    with pytest.raises(ValueError):
        build_tree(ds, rows=[])


def test_classifier_fit_predict():
    X, y = _clusters()
    clf = EntropyTreeClassifier(eta=1).fit(X, y)
    np.testing.assert_array_equal(clf.predict(X), y)
    assert clf.score(X, y) == 1.0
    np.testing.assert_array_equal(clf.classes_, ["a", "b"])


def test_classifier_print_tree(capsys):
    X, y = _clusters()
    clf = EntropyTreeClassifier(eta=1, feature_names=["x", "y"]).fit(X, y)
    clf.print_tree()
    out = capsys.readouterr().out
    assert "if x < 3.0000:" in out
    assert clf.export_rules()[0] == "x < 3.0000 => a"


def test_classifier_not_fitted_raises():
    clf = EntropyTreeClassifier()
    with pytest.raises(ValueError):
        clf.predict([[1.0, 2.0]])
    with pytest.raises(ValueError):
        clf.print_tree()


def test_classifier_params_roundtrip():
    clf = EntropyTreeClassifier(eta=3, pi=0.9)
    assert clf.get_params()["eta"] == 3
    assert clf.set_params(pi=0.8).pi == 0.8


def test_tree_predicts_integer_labels_unchanged():
    ds = Dataset.from_arrays([[0.0], [1.0], [10.0], [11.0]], [3, 3, 7, 7])
    tree = build_tree(ds, eta=0)
    assert tree.predict([0.5]) == 3
    assert isinstance(tree.predict([10.5]), int)
    assert tree.predict_many([[0.0], [11.0]]) == [3, 7]
