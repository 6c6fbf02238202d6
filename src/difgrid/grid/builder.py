"""
Parameter grids for the conditional likelihood evaluation.

The grid is the cartesian product of an alpha axis, one omega axis per tag
group and, when background branches exist, a background omega axis. Axes
are evenly spaced in a log-like warped space so that small values, where
selection signal is most informative, are sampled more densely.
"""

from dataclasses import dataclass
from typing import Callable

import numpy as np

from ..io.trees import Tree
from ..tags import node_tag_index

# Axis bounds: (lower, upper)
ALPHA_BOUNDS = (0.01, 13.0)
OMEGA_BOUNDS = (0.01, 13.0)
# Much coarser, because background omega isn't a target of inference
BACKGROUND_OMEGA_BOUNDS = (0.05, 6.0)


def warp(x):
    """Map a value from unwarped (log-like) space back to parameter space."""
    return 10 ** x - 0.05


def unwarp(x):
    """Map a parameter value into the space where axes are evenly spaced."""
    return np.log10(x + 0.05)


def build_axis(
    lower: float,
    upper: float,
    point_count: int,
    warp: Callable = warp,
    unwarp: Callable = unwarp,
) -> np.ndarray:
    """
    Build one grid axis.

    Parameters
    ----------
    lower, upper : float
        Axis bounds
    point_count : int
        Number of intervals; the axis has ``point_count + 1`` points
    warp, unwarp : callable
        Monotone map pair; points are evenly spaced in ``unwarp`` space

    Returns
    -------
    np.ndarray, shape (point_count + 1,)
        Increasing axis values, first and last equal to the bounds up to
        rounding
    """
    if point_count < 1:
        raise ValueError(f"point_count must be at least 1, got {point_count}")
    if not lower < upper:
        raise ValueError(f"Axis lower bound {lower} must be below upper bound {upper}")

    return warp(np.linspace(unwarp(lower), unwarp(upper), point_count + 1))


def add_to_each_element(vectors: list[list[float]], elements) -> list[list[float]]:
    """
    Extend every vector by every element (one cross-product step).

    The existing vectors vary slowest, so repeated extension keeps the
    first axis outermost and the last axis fastest.

    >>> add_to_each_element([[1.0], [2.0]], [3.0, 4.0])
    [[1.0, 3.0], [1.0, 4.0], [2.0, 3.0], [2.0, 4.0]]
    """
    return [v + [float(e)] for v in vectors for e in elements]


def alpha_and_single_omega_grids(
    alpha_grid: np.ndarray,
    omega_grid: np.ndarray,
    background_omega_grid: np.ndarray,
    is_background: bool,
) -> dict[str, list[list[float]]]:
    """
    (alpha, omega) pairs for subtrees evaluated under a single omega.

    Returns
    -------
    dict
        ``"Omega"`` pairs over the foreground omega axis and, when
        ``is_background``, ``"OmegaBackground"`` pairs over the background axis
    """
    alphas = [[float(a)] for a in alpha_grid]
    grids = {"Omega": add_to_each_element(alphas, omega_grid)}
    if is_background:
        grids["OmegaBackground"] = add_to_each_element(alphas, background_omega_grid)
    return grids


@dataclass
class GridSetup:
    """
    Grid shared by every evaluation strategy.

    Attributes
    ----------
    log_con_lik_matrix : np.ndarray, shape (n_grid_points, num_sites)
        Zero-filled output matrix
    codon_param_vec : list[list[float]]
        ``[alpha, omega_1, ..., omega_G(, omega_background)]`` per grid
        point; list order is the row order of every output matrix
    alpha_grid, omega_grid, background_omega_grid : np.ndarray
        Axes the parameter vectors were drawn from
    param_kinds : list[str]
        Label of each parameter vector entry
    is_background : bool
        Whether some non-root node belongs to no tag group
    num_groups : int
        Number of tags
    num_sites : int
        Number of alignment sites
    """

    log_con_lik_matrix: np.ndarray
    codon_param_vec: list[list[float]]
    alpha_grid: np.ndarray
    omega_grid: np.ndarray
    background_omega_grid: np.ndarray
    param_kinds: list[str]
    is_background: bool
    num_groups: int
    num_sites: int

    @property
    def n_grid_points(self) -> int:
        return len(self.codon_param_vec)

    def single_omega_grids(self) -> dict[str, list[list[float]]]:
        return alpha_and_single_omega_grids(
            self.alpha_grid, self.omega_grid, self.background_omega_grid, self.is_background
        )


def prepare_grid(
    tree: Tree,
    tags: list[str],
    foreground_grid: int = 6,
    background_grid: int = 4,
) -> GridSetup:
    """
    Build the axes, the full parameter list and the output matrix.

    Parameters
    ----------
    tree : Tree
        Tree with messages initialised (the root message fixes the number
        of sites)
    tags : list[str]
        Ordered tag strings; one omega axis per tag
    foreground_grid : int, default=6
        Intervals on the alpha and per-group omega axes
    background_grid : int, default=4
        Intervals on the background omega axis

    Returns
    -------
    GridSetup

    Raises
    ------
    TagResolutionError
        If some node cannot be assigned a tag group
    ValueError
        If the tree's messages have not been initialised
    """
    if tree.message is None:
        raise ValueError("Tree messages are not initialised; call initialize_messages first")

    alpha_grid = build_axis(*ALPHA_BOUNDS, foreground_grid)
    omega_grid = build_axis(*OMEGA_BOUNDS, foreground_grid)
    background_omega_grid = build_axis(*BACKGROUND_OMEGA_BOUNDS, background_grid)

    num_groups = len(tags)
    tag_inds = [
        node_tag_index(node, tags)
        for node in tree.root.preorder()
        if node.parent is not None
    ]
    # The root is resolved too, so malformed names fail here rather than mid-grid
    node_tag_index(tree.root, tags)
    is_background = bool(tag_inds) and max(tag_inds) > num_groups

    codon_param_vec = [[float(a)] for a in alpha_grid]
    param_kinds = ["Alpha"]
    for g in range(1, num_groups + 1):
        param_kinds.append(f"OmegaG{g}")
        codon_param_vec = add_to_each_element(codon_param_vec, omega_grid)
    if is_background:
        param_kinds.append("OmegaBackground")
        codon_param_vec = add_to_each_element(codon_param_vec, background_omega_grid)

    num_sites = tree.message.sites
    log_con_lik_matrix = np.zeros((len(codon_param_vec), num_sites))

    return GridSetup(
        log_con_lik_matrix=log_con_lik_matrix,
        codon_param_vec=codon_param_vec,
        alpha_grid=alpha_grid,
        omega_grid=omega_grid,
        background_omega_grid=background_omega_grid,
        param_kinds=param_kinds,
        is_background=is_background,
        num_groups=num_groups,
        num_sites=num_sites,
    )
