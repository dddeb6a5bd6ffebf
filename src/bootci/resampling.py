r"""
Resampling primitives: bootstrap replicates, strata and jackknife folds.

This module provides:

Classes
    :class:`Replicate`: One resample of a dataset (row positions + metadata)
    :class:`Bootstraps`: Ordered, immutable collection of bootstrap replicates

Functions
    :func:`as_dataset`: Coerce tabular input into a :class:`pandas.DataFrame`
    :func:`resample`: Draw ``times`` bootstrap replicates (plus optional apparent)
    :func:`bootstraps`: Stratified, seeded resampling returning :class:`Bootstraps`
    :func:`make_strata`: Bin/pool a column into resampling strata
    :func:`jackknife`: Leave-one-out folds used by the BCa acceleration

All index vectors are drawn up front, in replicate order, from a single
:class:`numpy.random.Generator` seeded through :class:`numpy.random.SeedSequence`.
The rows that make up a replicate therefore depend only on the seed, the row
count, ``times`` and the strata; never on how estimators are executed later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .errors import DegenerateJackknife
from .utils import make_seed_sequence

logger = logging.getLogger(__name__)

__all__ = [
    "APPARENT_ID",
    "Replicate",
    "Bootstraps",
    "as_dataset",
    "resample",
    "bootstraps",
    "make_strata",
    "jackknife",
]

APPARENT_ID = "Apparent"


def as_dataset(data: Any) -> pd.DataFrame:
    r"""
    Coerce tabular input into a :class:`pandas.DataFrame`.

    Parameters
    ----------
    data : DataFrame, ndarray, mapping of columns or sequence of records
        A 1-D array becomes a single column named ``"x"``; 2-D arrays get
        columns ``x0, x1, ...``.

    Returns
    -------
    pandas.DataFrame

    Raises
    ------
    ValueError
        If the dataset has no rows.
    """
    if isinstance(data, pd.DataFrame):
        frame = data
    elif isinstance(data, pd.Series):
        frame = data.to_frame(name=data.name if data.name is not None else "x")
    elif isinstance(data, np.ndarray):
        if data.ndim == 1:
            frame = pd.DataFrame({"x": data})
        elif data.ndim == 2:
            frame = pd.DataFrame(data, columns=[f"x{j}" for j in range(data.shape[1])])
        else:
            raise ValueError(f"arrays must be 1-D or 2-D, got {data.ndim}-D")
    else:
        frame = pd.DataFrame(data)
    if len(frame) < 1:
        raise ValueError("dataset must have at least one row")
    return frame


@dataclass(frozen=True, eq=False)
class Replicate:
    r"""
    One resample of a dataset.

    Attributes
    ----------
    id : str
        ``"Bootstrap0001"``-style label, ``"Apparent"`` or ``"Jackknife01"``.
    indices : ndarray of int
        Row positions into :attr:`data` making up the analysis set.
    data : pandas.DataFrame
        The original (shared, read-only) dataset.
    apparent : bool
        Whether this is the unsampled original dataset.
    """

    id: str
    indices: np.ndarray
    data: pd.DataFrame = field(repr=False)
    apparent: bool = False

    def analysis(self) -> pd.DataFrame:
        """Rows of the analysis set, in draw order, with a fresh ``RangeIndex``."""
        return self.data.iloc[self.indices].reset_index(drop=True)

    def assessment(self) -> pd.DataFrame:
        """
        Out-of-bag rows (never drawn into the analysis set).

        For the apparent replicate this is the full dataset.
        """
        if self.apparent:
            return self.data.reset_index(drop=True)
        mask = np.ones(len(self.data), dtype=bool)
        mask[self.indices] = False
        return self.data.iloc[np.flatnonzero(mask)].reset_index(drop=True)

    def __len__(self) -> int:
        return int(self.indices.size)


@dataclass(frozen=True, eq=False)
class Bootstraps:
    r"""
    Ordered, immutable collection of bootstrap replicates.

    Attributes
    ----------
    data : pandas.DataFrame
        Original dataset.
    replicates : tuple of Replicate
        Bootstrap replicates in draw order; the apparent replicate, if any, is last.
    times : int
        Number of (non-apparent) bootstrap replicates.
    apparent : bool
        Whether an apparent replicate was appended.
    strata : str, optional
        Column used for stratified resampling.
    seed_entropy : int, optional
        Entropy of the :class:`numpy.random.SeedSequence` that drove the draws.
    """

    data: pd.DataFrame = field(repr=False)
    replicates: tuple[Replicate, ...]
    times: int
    apparent: bool = False
    strata: Optional[str] = None
    seed_entropy: Optional[int] = None

    def __len__(self) -> int:
        return len(self.replicates)

    def __iter__(self) -> Iterator[Replicate]:
        return iter(self.replicates)

    def __getitem__(self, i: int) -> Replicate:
        return self.replicates[i]

    @property
    def ids(self) -> list[str]:
        return [r.id for r in self.replicates]

    @property
    def apparent_replicate(self) -> Optional[Replicate]:
        return self.replicates[-1] if self.apparent else None

    def non_apparent(self) -> list[Replicate]:
        return [r for r in self.replicates if not r.apparent]


def _bootstrap_ids(times: int) -> list[str]:
    width = len(str(times))
    return [f"Bootstrap{i:0{width}d}" for i in range(1, times + 1)]


def make_strata(values: Union[pd.Series, Sequence[Any]], breaks: int = 4, pool: float = 0.1) -> np.ndarray:
    r"""
    Turn a column into integer stratum labels for stratified resampling.

    Numeric columns with more than ``breaks`` distinct values are cut into
    ``breaks`` quantile bins. Strata holding less than ``pool`` of the rows are
    pooled into a single stratum; when that pooled stratum is itself still too
    small it is merged into the smallest remaining stratum.

    Parameters
    ----------
    values : Series or sequence
        Stratification variable.
    breaks : int, default 4
        Number of quantile bins for numeric variables.
    pool : float, default 0.1
        Minimum share of rows a stratum must hold to stand on its own.

    Returns
    -------
    ndarray of int
        Contiguous labels ``0..k-1`` aligned with ``values``.

    Raises
    ------
    ValueError
        If ``values`` contains missing entries.

    Examples
    --------
    >>> make_strata(["a", "a", "b", "b", "b", "c"], pool=0.0).tolist()
    [0, 0, 1, 1, 1, 2]
    """
    series = values if isinstance(values, pd.Series) else pd.Series(list(values))
    if series.isna().any():
        raise ValueError("strata variable contains missing values")

    n = len(series)
    if pd.api.types.is_numeric_dtype(series) and series.nunique() > breaks:
        codes = pd.qcut(series, q=breaks, labels=False, duplicates="drop").to_numpy(dtype=int)
    else:
        codes, _ = pd.factorize(series, sort=True)
        codes = np.asarray(codes, dtype=int)

    counts = np.bincount(codes)
    threshold = pool * n
    small = np.flatnonzero(counts < threshold)
    if small.size and small.size < counts.size:
        pooled = int(small[0])
        codes = np.where(np.isin(codes, small), pooled, codes)
        if counts[small].sum() < threshold:
            large = np.setdiff1d(np.arange(counts.size), small)
            target = int(large[np.argmin(counts[large])])
            codes = np.where(codes == pooled, target, codes)
        logger.debug("Pooled %d small strata (threshold %.1f rows)", small.size, threshold)

    # relabel to 0..k-1
    _, codes = np.unique(codes, return_inverse=True)
    return codes.astype(int)


def _draw_indices(
    rng: np.random.Generator,
    n: int,
    times: int,
    strata_codes: Optional[np.ndarray],
) -> list[np.ndarray]:
    if strata_codes is None:
        idx = rng.integers(0, n, size=(times, n), endpoint=False)
        return [idx[b] for b in range(times)]

    groups = [np.flatnonzero(strata_codes == k) for k in range(int(strata_codes.max()) + 1)]
    out = []
    for _ in range(times):
        out.append(np.concatenate([rng.choice(rows, size=rows.size, replace=True) for rows in groups]))
    return out


def resample(
    dataset: Any,
    times: int,
    include_apparent: bool = False,
    *,
    seed: Union[int, np.random.SeedSequence, None] = None,
) -> list[Replicate]:
    r"""
    Draw ``times`` bootstrap replicates of ``dataset``.

    Parameters
    ----------
    dataset : DataFrame or array-like
        Original data (see :func:`as_dataset`). Must have at least one row.
    times : int
        Number of replicates, ``>= 1``.
    include_apparent : bool, default False
        Append the unsampled dataset as a final replicate flagged ``apparent``.
    seed : int or SeedSequence, optional
        Seed for reproducible draws.

    Returns
    -------
    list of Replicate

    Examples
    --------
    >>> reps = resample([1.0, 2.0, 3.0], times=2, include_apparent=True, seed=1)
    >>> [r.id for r in reps]
    ['Bootstrap1', 'Bootstrap2', 'Apparent']
    """
    return list(bootstraps(dataset, times, apparent=include_apparent, seed=seed).replicates)


def bootstraps(
    data: Any,
    times: int = 25,
    *,
    strata: Optional[str] = None,
    breaks: int = 4,
    pool: float = 0.1,
    apparent: bool = False,
    seed: Union[int, np.random.SeedSequence, None] = None,
) -> Bootstraps:
    r"""
    Create bootstrap replicates, optionally stratified.

    Parameters
    ----------
    data : DataFrame or array-like
        Original data (see :func:`as_dataset`).
    times : int, default 25
        Number of bootstrap replicates.
    strata : str, optional
        Column name; rows are resampled within each stratum so that stratum
        sizes are preserved.
    breaks : int, default 4
        Quantile bins for a numeric ``strata`` column (see :func:`make_strata`).
    pool : float, default 0.1
        Pooling threshold for small strata.
    apparent : bool, default False
        Append the apparent replicate last.
    seed : int or SeedSequence, optional
        Seed for :class:`numpy.random.SeedSequence`.

    Returns
    -------
    Bootstraps

    Raises
    ------
    ValueError
        If ``times < 1`` or the dataset is empty.
    KeyError
        If ``strata`` is not a column of ``data``.
    """
    if times < 1:
        raise ValueError("times must be >= 1")
    frame = as_dataset(data)
    n = len(frame)

    strata_codes = None
    if strata is not None:
        if strata not in frame.columns:
            raise KeyError(f"strata column '{strata}' not found in dataset")
        strata_codes = make_strata(frame[strata], breaks=breaks, pool=pool)

    seed_seq = make_seed_sequence(seed)
    rng = np.random.default_rng(seed_seq)
    draws = _draw_indices(rng, n, times, strata_codes)

    reps = [Replicate(id=rid, indices=idx, data=frame) for rid, idx in zip(_bootstrap_ids(times), draws)]
    if apparent:
        reps.append(Replicate(id=APPARENT_ID, indices=np.arange(n), data=frame, apparent=True))

    logger.debug("Drew %d bootstrap replicates of %d rows (strata=%s)", times, n, strata)
    return Bootstraps(
        data=frame,
        replicates=tuple(reps),
        times=times,
        apparent=apparent,
        strata=strata,
        seed_entropy=seed_seq.entropy,
    )


def jackknife(dataset: Any) -> list[Replicate]:
    r"""
    Leave-one-out folds of ``dataset``.

    Parameters
    ----------
    dataset : DataFrame or array-like
        Original data.

    Returns
    -------
    list of Replicate
        One replicate per row; fold ``i`` omits row ``i``.

    Raises
    ------
    DegenerateJackknife
        If the dataset has fewer than two rows.
    """
    frame = as_dataset(dataset)
    n = len(frame)
    if n < 2:
        raise DegenerateJackknife(
            f"jackknife needs at least 2 rows, got {n}; a single leave-one-out fold has zero variance"
        )
    width = len(str(n))
    everything = np.arange(n)
    return [
        Replicate(id=f"Jackknife{i + 1:0{width}d}", indices=np.delete(everything, i), data=frame)
        for i in range(n)
    ]
