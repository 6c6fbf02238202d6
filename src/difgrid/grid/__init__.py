"""
Grid construction and evaluation of conditional likelihoods.
"""

from .builder import (
    GridSetup,
    add_to_each_element,
    alpha_and_single_omega_grids,
    build_axis,
    prepare_grid,
    unwarp,
    warp,
)
from .branch_models import BranchModels, tag_index_table
from .cache import SubcladeMessageCache
from .evaluator import (
    PhaseStats,
    evaluate_direct,
    evaluate_memoized,
    evaluate_memoized_parallel,
    evaluate_parallel,
)
from .normalize import normalize_log_likelihoods
from .subclades import detect_pure_subclades
from .surgery import collapsed, detached
from .workers import partition

__all__ = [
    "GridSetup",
    "add_to_each_element",
    "alpha_and_single_omega_grids",
    "build_axis",
    "prepare_grid",
    "unwarp",
    "warp",
    "BranchModels",
    "tag_index_table",
    "SubcladeMessageCache",
    "PhaseStats",
    "evaluate_direct",
    "evaluate_memoized",
    "evaluate_memoized_parallel",
    "evaluate_parallel",
    "normalize_log_likelihoods",
    "detect_pure_subclades",
    "collapsed",
    "detached",
    "partition",
]
