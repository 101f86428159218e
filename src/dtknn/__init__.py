# dtknn/__init__.py
"""
dtknn: entropy decision trees and k-nearest neighbours, compared by k-fold F1.

Exports:
    - Dataset, load_dataset, kfold_partition
    - build_tree, DecisionTree, EntropyTreeClassifier
    - k_nearest_neighbors, KNNClassifier
    - cross_validate, CrossValidationConfig, macro_f1
    - enable_logging
"""
from loguru import logger

from .dataset import Dataset, kfold_partition, load_dataset
from .evaluation import CrossValidationConfig, CrossValidationReport, cross_validate, f1_scores, macro_f1
from .knn import KNNClassifier, k_nearest_neighbors
from .logging import PACKAGE_NAME, enable_logging
from .tree import DecisionTree, EntropyTreeClassifier, build_tree, evaluate_split

logger.disable(PACKAGE_NAME)

__all__ = [
    "CrossValidationConfig",
    "CrossValidationReport",
    "Dataset",
    "DecisionTree",
    "EntropyTreeClassifier",
    "KNNClassifier",
    "build_tree",
    "cross_validate",
    "enable_logging",
    "evaluate_split",
    "f1_scores",
    "k_nearest_neighbors",
    "kfold_partition",
    "load_dataset",
    "macro_f1",
]
__version__ = "0.1.0"
