"""Sample-mean estimator."""

from __future__ import annotations

import numpy as np
import pandas as pd

__all__ = ["mean_estimator"]


def mean_estimator(frame: pd.DataFrame, column: str = "x") -> pd.DataFrame:
    r"""
    Sample mean of one column with its standard error.

    Parameters
    ----------
    frame : pandas.DataFrame
        Analysis set of a replicate.
    column : str, default "x"
        Column to average.

    Returns
    -------
    pandas.DataFrame
        One row: ``term="mean"``, ``estimate`` :math:`\bar X`, ``std.error``
        :math:`s/\sqrt{n}` (NaN when :math:`n < 2`).

    Examples
    --------
    >>> out = mean_estimator(pd.DataFrame({"x": [1.0, 2.0, 3.0]}))
    >>> float(out["estimate"].iloc[0])
    2.0
    """
    x = frame[column].to_numpy(dtype=float)
    m = float(np.mean(x))
    se = float(np.std(x, ddof=1) / np.sqrt(x.size)) if x.size > 1 else float("nan")
    return pd.DataFrame({"term": ["mean"], "estimate": [m], "std.error": [se]})
