"""Lag-block partitions and antecedent precipitation weighting."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import tensorflow as tf

from .constants import MONTHS
from .errors import ConfigurationError

DTYPE = tf.float64


class LagBlockMap:
    """Many-to-one map from (lag year, month) cells to shared weight blocks.

    ``block[l - 1, m - 1]`` holds the 1-based block id of month ``m`` in the
    year lying ``l`` years before the target year.  The map keeps a 0-based
    lookup table (``index``) and the number of cells sharing each block
    (``cell_counts``) so that weights can be expanded without label matching.
    """

    def __init__(self, block: np.ndarray) -> None:
        table = np.asarray(block)
        if table.ndim != 2 or table.shape[1] != MONTHS or table.shape[0] < 1:
            raise ConfigurationError(
                f"block map must have shape (nlag, {MONTHS}), got {table.shape}"
            )
        if not np.issubdtype(table.dtype, np.integer):
            if not np.all(np.isfinite(table)) or not np.all(table == np.round(table)):
                raise ConfigurationError("block ids must be integers")
            table = table.astype(int)
        if np.any(table < 1):
            raise ConfigurationError("block ids must be positive integers starting at 1")

        n_blocks = int(table.max())
        counts = np.bincount(table.ravel() - 1, minlength=n_blocks)
        unused = np.flatnonzero(counts == 0) + 1
        if unused.size:
            raise ConfigurationError(
                f"block ids {unused.tolist()} are never used; every id in 1..{n_blocks} "
                "needs at least one cell for the weight simplex to be identifiable"
            )

        self.block = table.astype(int)
        self.block.setflags(write=False)
        self.index = self.block - 1
        self.index.setflags(write=False)
        self.cell_counts = counts.astype(int)
        self.cell_counts.setflags(write=False)

    @property
    def n_lag(self) -> int:
        return int(self.block.shape[0])

    @property
    def n_blocks(self) -> int:
        return int(self.cell_counts.shape[0])

    @property
    def name(self) -> str:
        return f"lag{self.n_lag}_blocks{self.n_blocks}"

    def block_id(self, lag_year: int, month: int) -> int:
        """Return the 1-based block id of ``month`` (1..12) in ``lag_year`` (1..nlag)."""

        if not 1 <= lag_year <= self.n_lag:
            raise ConfigurationError(f"lag_year must be in 1..{self.n_lag}, got {lag_year}")
        if not 1 <= month <= MONTHS:
            raise ConfigurationError(f"month must be in 1..{MONTHS}, got {month}")
        return int(self.block[lag_year - 1, month - 1])

    def cell_share(self) -> np.ndarray:
        """Per-cell ``1 / count(block)`` factors, shape ``[nlag, 12]``."""

        return 1.0 / self.cell_counts[self.index]

    def __repr__(self) -> str:
        return f"LagBlockMap(n_lag={self.n_lag}, n_blocks={self.n_blocks})"


def build_lag_block_map(block: Sequence[Sequence[int]] | np.ndarray, nlag: int | None = None) -> LagBlockMap:
    """Validate ``block`` against ``nlag`` and return a :class:`LagBlockMap`."""

    block_map = LagBlockMap(np.asarray(block))
    if nlag is not None and block_map.n_lag != int(nlag):
        raise ConfigurationError(
            f"block map has {block_map.n_lag} lag years but nlag={nlag}"
        )
    return block_map


def monthly_partition(nlag: int) -> np.ndarray:
    """Every (lag year, month) cell gets its own block."""

    if nlag < 1:
        raise ConfigurationError(f"nlag must be >= 1, got {nlag}")
    return np.arange(1, nlag * MONTHS + 1, dtype=int).reshape(nlag, MONTHS)


def grouped_partition(widths: Sequence[int]) -> np.ndarray:
    """Contiguous blocks of ``widths[l]`` months within lag year ``l + 1``.

    ``grouped_partition((1, 3, 12))`` keeps the first lag year monthly, groups
    the second into seasons and the third into a single block (12 + 4 + 1 ids).
    """

    if len(widths) < 1:
        raise ConfigurationError("at least one lag year width is required")
    rows = []
    next_id = 1
    for lag, width in enumerate(widths, start=1):
        width = int(width)
        if width < 1 or MONTHS % width:
            raise ConfigurationError(
                f"block width {width} for lag year {lag} must divide {MONTHS}"
            )
        rows.append(next_id + np.arange(MONTHS) // width)
        next_id += MONTHS // width
    return np.vstack(rows).astype(int)


def month_weights_np(weights: np.ndarray, block_map: LagBlockMap) -> np.ndarray:
    """Expand block weights ``[..., K]`` to per-cell weights ``[..., nlag, 12]``."""

    w = np.asarray(weights, dtype=np.float64)
    if w.shape[-1] != block_map.n_blocks:
        raise ConfigurationError(
            f"weight vector has {w.shape[-1]} components, block map has {block_map.n_blocks}"
        )
    return w[..., block_map.index] * block_map.cell_share()


def month_weights_tf(weights: tf.Tensor, block_map: LagBlockMap) -> tf.Tensor:
    """TensorFlow counterpart of :func:`month_weights_np`."""

    w = tf.convert_to_tensor(weights, dtype=DTYPE)
    expanded = tf.gather(w, tf.constant(block_map.index, dtype=tf.int32), axis=-1)
    return expanded * tf.constant(block_map.cell_share(), dtype=DTYPE)


def antecedent_index_np(
    windows: np.ndarray,
    weights: np.ndarray,
    block_map: LagBlockMap,
) -> np.ndarray:
    """Antecedent precipitation index for each target year.

    Args:
        windows: ``[N, nlag, 12]`` precipitation slices (see ``DataStore.windows``).
        weights: block weights, ``[K]`` or batched ``[..., K]``.
        block_map: lag-block partition.

    Returns:
        ``[N]`` for a single weight vector, ``[..., N]`` for batched weights.
    """

    X = np.asarray(windows, dtype=np.float64)
    if X.shape[1:] != block_map.block.shape:
        raise ConfigurationError(
            f"precipitation windows have shape {X.shape[1:]}, block map {block_map.block.shape}"
        )
    cell_w = month_weights_np(weights, block_map)
    return np.einsum("nlm,...lm->...n", X, cell_w)


def antecedent_index_tf(
    windows: tf.Tensor,
    weights: tf.Tensor,
    block_map: LagBlockMap,
) -> tf.Tensor:
    """Batched TensorFlow antecedent index; ``weights`` is ``[..., K]``."""

    X = tf.convert_to_tensor(windows, dtype=DTYPE)
    cell_w = month_weights_tf(weights, block_map)
    return tf.einsum("nlm,...lm->...n", X, cell_w)


def months_into_past(values: np.ndarray) -> np.ndarray:
    """Flatten ``[..., nlag, 12]`` so index 0 is the most recent month.

    The most recent month is December of the year before the target year;
    the sequence then walks back month by month through every lag year.
    """

    arr = np.asarray(values)
    return arr[..., ::-1].reshape(*arr.shape[:-2], arr.shape[-2] * arr.shape[-1])


def lag_year_mass(weights: np.ndarray, block_map: LagBlockMap) -> np.ndarray:
    """Total weight falling in each lag year, shape ``[..., nlag]``."""

    return month_weights_np(weights, block_map).sum(axis=-1)


__all__ = [
    "DTYPE",
    "LagBlockMap",
    "antecedent_index_np",
    "antecedent_index_tf",
    "build_lag_block_map",
    "grouped_partition",
    "lag_year_mass",
    "month_weights_np",
    "month_weights_tf",
    "monthly_partition",
    "months_into_past",
]
