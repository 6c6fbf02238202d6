"""
Evaluation of the conditional log-likelihood grid.

Four strategies fill the same ``(n_grid_points, n_sites)`` matrix, row ``i``
holding the per-site log-likelihoods under codon parameter vector ``i``:

- ``evaluate_direct``: one tree, every grid point in turn
- ``evaluate_parallel``: contiguous chunks of grid points on tree replicas
- ``evaluate_memoized``: as direct, with pure subclades replaced by cached
  messages
- ``evaluate_memoized_parallel``: both of the above

Every grid point travels with its row index, so the row order never depends
on worker scheduling.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..core.likelihood import tree_site_log_likelihoods
from ..io.trees import Tree, TreeNode
from ..models.codon import MG94Cacher
from .branch_models import BranchModels, tag_index_table
from .builder import GridSetup
from .cache import SubcladeMessageCache
from .subclades import detect_pure_subclades
from .surgery import collapsed
from .workers import default_n_workers, make_replicas, partition, run_chunks

PROGRESS_EVERY = 500


@dataclass
class PhaseStats:
    """
    Timing and memory of one grid evaluation.

    Attributes
    ----------
    strategy : str
        Strategy that produced the matrix
    n_workers : int
        Workers used for the grid phase
    n_subclades : int
        Pure subclades replaced by cached messages
    n_cached_messages : int
        Entries in the subclade message cache
    cache_nbytes : int
        Memory held by cached messages
    cache_seconds : float
        Wall time of cache construction
    grid_seconds : float
        Wall time of the grid phase
    """

    strategy: str
    n_workers: int = 1
    n_subclades: int = 0
    n_cached_messages: int = 0
    cache_nbytes: int = 0
    cache_seconds: float = 0.0
    grid_seconds: float = 0.0


def do_subgrid(
    tree: Tree,
    cached_model: MG94Cacher,
    chunk: list[tuple[int, list[float]]],
    tag_table: list[int],
    nuc_matrix: np.ndarray,
    f3x4: np.ndarray,
    log_con_lik_matrix: np.ndarray,
    cache: Optional[SubcladeMessageCache] = None,
    subclade_nodes: Optional[list[TreeNode]] = None,
    verbosity: int = 0,
) -> None:
    """
    Evaluate a chunk of ``(row index, codon parameters)`` on one tree.

    With a cache, ``subclade_nodes`` (nodes of ``tree``) are collapsed for
    the duration of the chunk and their messages overwritten from the cache
    before each pass.
    """
    subclade_nodes = subclade_nodes or []
    n_rows = log_con_lik_matrix.shape[0]

    with collapsed(subclade_nodes):
        for row_ind, params in chunk:
            models = BranchModels.for_grid_point(
                params, tag_table, cached_model, nuc_matrix, f3x4
            )
            for node in subclade_nodes:
                node.message = cache.lookup(node.index, params)

            log_con_lik_matrix[row_ind, :] = tree_site_log_likelihoods(tree, models)

            if verbosity > 0 and row_ind % PROGRESS_EVERY == 0:
                print(f"{round(100 * row_ind / n_rows)}% ", end="", flush=True)


def _announce(setup: GridSetup, verbosity: int) -> None:
    if verbosity > 0:
        print(
            f"Calculating grid of {setup.n_grid_points}-by-{setup.num_sites} "
            f"conditional likelihood values (the slowest step). Currently on:"
        )


def _check_workers(n_workers: Optional[int]) -> int:
    n_workers = default_n_workers() if n_workers is None else n_workers
    if n_workers < 1:
        raise ValueError(f"n_workers must be at least 1, got {n_workers}")
    return n_workers


def evaluate_direct(
    tree: Tree,
    tags: list[str],
    setup: GridSetup,
    nuc_matrix: np.ndarray,
    f3x4: np.ndarray,
    genetic_code: Optional[dict] = None,
    verbosity: int = 1,
) -> tuple[np.ndarray, PhaseStats]:
    """
    Evaluate every grid point sequentially on ``tree``.

    Parameters
    ----------
    tree : Tree
        Tree with contiguous node indices and initialised messages
    tags : list[str]
        Ordered tag strings
    setup : GridSetup
        Grid from :func:`prepare_grid`; its output matrix is filled in place
    nuc_matrix : np.ndarray, shape (4, 4)
        Nucleotide exchangeabilities
    f3x4 : np.ndarray, shape (3, 4)
        Position-specific nucleotide frequencies
    genetic_code : dict, optional
        Codon table; standard code by default
    verbosity : int, default=1
        Print progress when > 0

    Returns
    -------
    log_con_lik_matrix : np.ndarray
        The filled output matrix
    stats : PhaseStats
    """
    start = time.perf_counter()
    _announce(setup, verbosity)

    tag_table = tag_index_table(tree, tags)
    chunk = list(enumerate(setup.codon_param_vec))
    do_subgrid(
        tree, MG94Cacher(genetic_code), chunk, tag_table, nuc_matrix, f3x4,
        setup.log_con_lik_matrix, verbosity=verbosity,
    )
    if verbosity > 0:
        print()

    stats = PhaseStats(strategy="direct", grid_seconds=time.perf_counter() - start)
    return setup.log_con_lik_matrix, stats


def evaluate_parallel(
    tree: Tree,
    tags: list[str],
    setup: GridSetup,
    nuc_matrix: np.ndarray,
    f3x4: np.ndarray,
    genetic_code: Optional[dict] = None,
    verbosity: int = 1,
    n_workers: Optional[int] = None,
) -> tuple[np.ndarray, PhaseStats]:
    """
    Evaluate contiguous chunks of grid points on independent tree replicas.

    Each worker owns a replica and a model constructor and writes only its
    own rows. Parameters are as for :func:`evaluate_direct`, plus
    ``n_workers`` (defaults to the CPU count).
    """
    n_workers = _check_workers(n_workers)
    start = time.perf_counter()
    _announce(setup, verbosity)

    tag_table = tag_index_table(tree, tags)
    chunks = partition(list(enumerate(setup.codon_param_vec)), n_workers)
    replicas = make_replicas(tree, len(chunks))
    args = [
        (replica, MG94Cacher(genetic_code), chunk, tag_table, nuc_matrix, f3x4,
         setup.log_con_lik_matrix)
        for replica, chunk in zip(replicas, chunks)
    ]
    run_chunks(do_subgrid, args)
    if verbosity > 0:
        print()

    stats = PhaseStats(
        strategy="parallel",
        n_workers=len(chunks),
        grid_seconds=time.perf_counter() - start,
    )
    return setup.log_con_lik_matrix, stats


def _report_cache(cache: SubcladeMessageCache, seconds: float, verbosity: int) -> None:
    if verbosity > 0:
        print(
            f"Cached {len(cache)} messages for {len(cache.tag_inds)} pure subclades "
            f"({cache.nbytes / 1024 ** 2:.2f} MB) in {seconds:.2f}s"
        )


def evaluate_memoized(
    tree: Tree,
    tags: list[str],
    setup: GridSetup,
    nuc_matrix: np.ndarray,
    f3x4: np.ndarray,
    genetic_code: Optional[dict] = None,
    verbosity: int = 1,
) -> tuple[np.ndarray, PhaseStats]:
    """
    Sequential evaluation with pure subclades served from a message cache.

    Without pure subclades this is exactly :func:`evaluate_direct` and no
    cache is built. The tree's structure is the same afterwards.
    """
    subclades, _, _ = detect_pure_subclades(tree.root, tags)
    if not subclades:
        matrix, stats = evaluate_direct(
            tree, tags, setup, nuc_matrix, f3x4, genetic_code, verbosity
        )
        stats.strategy = "memoized"
        return matrix, stats

    cached_model = MG94Cacher(genetic_code)
    tag_table = tag_index_table(tree, tags)

    cache_start = time.perf_counter()
    cache = SubcladeMessageCache.build(
        subclades, tags, setup, nuc_matrix, f3x4, cached_model
    )
    cache_seconds = time.perf_counter() - cache_start
    _report_cache(cache, cache_seconds, verbosity)

    grid_start = time.perf_counter()
    _announce(setup, verbosity)
    do_subgrid(
        tree, cached_model, list(enumerate(setup.codon_param_vec)), tag_table,
        nuc_matrix, f3x4, setup.log_con_lik_matrix,
        cache=cache, subclade_nodes=subclades, verbosity=verbosity,
    )
    if verbosity > 0:
        print()

    stats = PhaseStats(
        strategy="memoized",
        n_subclades=len(subclades),
        n_cached_messages=len(cache),
        cache_nbytes=cache.nbytes,
        cache_seconds=cache_seconds,
        grid_seconds=time.perf_counter() - grid_start,
    )
    return setup.log_con_lik_matrix, stats


def evaluate_memoized_parallel(
    tree: Tree,
    tags: list[str],
    setup: GridSetup,
    nuc_matrix: np.ndarray,
    f3x4: np.ndarray,
    genetic_code: Optional[dict] = None,
    verbosity: int = 1,
    n_workers: Optional[int] = None,
) -> tuple[np.ndarray, PhaseStats]:
    """
    Parallel cache construction followed by parallel memoized evaluation.

    Subclades are detected once on ``tree``; each worker maps them to its
    own replica's nodes by index and reads the shared cache.
    """
    n_workers = _check_workers(n_workers)
    chunks = partition(list(enumerate(setup.codon_param_vec)), n_workers)
    replicas = make_replicas(tree, len(chunks))
    cached_models = [MG94Cacher(genetic_code) for _ in replicas]
    tag_table = tag_index_table(tree, tags)
    subclades, _, _ = detect_pure_subclades(tree.root, tags)

    with ThreadPoolExecutor(max_workers=len(replicas)) as executor:
        cache_start = time.perf_counter()
        cache = SubcladeMessageCache.build_parallel(
            replicas, subclades, tags, setup, nuc_matrix, f3x4, cached_models, executor
        )
        cache_seconds = time.perf_counter() - cache_start
        if subclades:
            _report_cache(cache, cache_seconds, verbosity)

        grid_start = time.perf_counter()
        _announce(setup, verbosity)
        args = []
        for replica, cached_model, chunk in zip(replicas, cached_models, chunks):
            node_list = replica.node_list()
            local_subclades = [node_list[x.index] for x in subclades]
            args.append(
                (replica, cached_model, chunk, tag_table, nuc_matrix, f3x4,
                 setup.log_con_lik_matrix, cache, local_subclades)
            )
        run_chunks(do_subgrid, args, executor)
        grid_seconds = time.perf_counter() - grid_start
    if verbosity > 0:
        print()

    stats = PhaseStats(
        strategy="memoized-parallel",
        n_workers=len(replicas),
        n_subclades=len(subclades),
        n_cached_messages=len(cache),
        cache_nbytes=cache.nbytes,
        cache_seconds=cache_seconds,
        grid_seconds=grid_seconds,
    )
    return setup.log_con_lik_matrix, stats
