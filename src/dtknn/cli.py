"""Command line entry point: cross-validate the decision tree and k-NN on a dataset."""

from __future__ import annotations

import argparse
import sys

from loguru import logger

from .dataset import load_dataset
from .evaluation import CrossValidationConfig, cross_validate
from .logging import enable_logging


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="dtknn",
        description="Compare an entropy decision tree with k-NN by k-fold macro-F1.",
    )
    ap.add_argument("features", help="features table (csv, optionally .xz compressed)")
    ap.add_argument("labels", help="labels table (csv, optionally .xz compressed)")
    ap.add_argument("--eta", type=int, default=15, help="minimum leaf size (default: 15)")
    ap.add_argument("--pi", type=float, default=1.0, help="minimum leaf purity (default: 1.0)")
    ap.add_argument("-k", type=int, default=1, help="neighbours for k-NN (default: 1)")
    ap.add_argument("--kfold", type=int, default=5, help="number of folds (default: 5)")
    ap.add_argument("--print-trees", action="store_true", help="print the tree of every fold")
    ap.add_argument("--jobs", type=int, default=None,
                    help="threads for the per-feature split search (-1: all CPUs)")
    ap.add_argument("--log-level", default="WARNING",
                    choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
                    help="stderr log level (default: WARNING)")
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    with enable_logging(level=args.log_level):
        try:
            config = CrossValidationConfig(
                eta=args.eta,
                pi=args.pi,
                k=args.k,
                kfold=args.kfold,
                print_trees=args.print_trees,
                tree_jobs=args.jobs,
            )
            dataset = load_dataset(args.features, args.labels)
            report = cross_validate(dataset, config)
        except (OSError, ValueError) as exc:
            logger.error("Run failed", error=str(exc))
            print(f"dtknn: error: {exc}", file=sys.stderr)
            return 1
    print(report.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
