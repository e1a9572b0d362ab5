"""Post-hoc standardised coefficients.

Coefficients are rescaled by the sample standard deviation of their design
column (and, for gaussian responses, divided by the standard deviation of
the response). The intercept and constant columns have no standardised
value.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

__all__ = ["posthoc_standardize"]


def posthoc_standardize(
    estimate: ArrayLike,
    se: ArrayLike | None,
    exog: ArrayLike,
    endog: ArrayLike | None = None,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Return ``(std_estimate, std_se)`` on the linear scale.

    Parameters
    ----------
    estimate, se : array-like, shape (k,)
        Linear-scale coefficients and standard errors.
    exog : array-like, shape (n, k)
        Design matrix whose columns line up with ``estimate``.
    endog : array-like, shape (n,), optional
        Response. When given (gaussian families) the scale factor is
        ``sd(x) / sd(y)``; otherwise it is ``sd(x)``.

    """
    b = np.asarray(estimate, dtype=np.float64).reshape(-1)
    X = np.asarray(exog, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    if X.shape[1] != b.size:
        raise ValueError(f"design has {X.shape[1]} columns but {b.size} coefficients")
    sd_x = np.std(X, axis=0, ddof=1)
    factor = np.where(sd_x > 0, sd_x, np.nan)
    if endog is not None:
        sd_y = float(np.std(np.asarray(endog, dtype=np.float64).reshape(-1), ddof=1))
        factor = factor / sd_y if sd_y > 0 else np.full_like(factor, np.nan)
    s = (
        np.full(b.size, np.nan, dtype=np.float64)
        if se is None
        else np.asarray(se, dtype=np.float64).reshape(-1)
    )
    return b * factor, s * factor
