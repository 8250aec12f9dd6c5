"""
Correlation matrix validation and factorization.

Mathematical Model
------------------
Correlated standard normals are built from independent ones:
    x = L @ z,    z ~ N(0, I)
where L is the lower-triangular Cholesky factor of the correlation
matrix ρ (L @ L.T = ρ).

Positive definite matrices go through scipy.linalg.cholesky. The fallback
factorization tolerates positive semi-definite matrices: a pivot in
[-tol, 0] is treated as zero and its column below the diagonal must then be
zero as well (perfectly correlated assets). A pivot below -tol means ρ is not
PSD and the request is rejected.

Design principles
-----------------
- Computed once per request, shared read-only by every worker
- Validation errors name the offending row/entry
"""

from __future__ import annotations
from typing import Optional, Sequence

import numpy as np
from scipy.linalg import LinAlgError, cholesky

from .constants import CORRELATION_TOLERANCE
from .exceptions import InvalidCorrelationMatrix

__all__ = ["CorrelationFactorizer", "cholesky_psd"]


def cholesky_psd(matrix: np.ndarray, tol: float = CORRELATION_TOLERANCE) -> np.ndarray:
    """
    Lower-triangular factor of a symmetric PSD matrix.

    Parameters
    ----------
    matrix : np.ndarray, shape (M, M)
        Symmetric matrix.
    tol : float
        Pivot tolerance.

    Returns
    -------
    np.ndarray, shape (M, M)
        L with L @ L.T ≈ matrix.

    Raises
    ------
    InvalidCorrelationMatrix
        On a negative pivot, or a non-zero residual against a zero pivot.
    """
    n = matrix.shape[0]
    L = np.zeros((n, n), dtype=float)
    for j in range(n):
        pivot = matrix[j, j] - np.dot(L[j, :j], L[j, :j])
        if pivot < -tol:
            raise InvalidCorrelationMatrix(
                f"correlation matrix is not positive semi-definite "
                f"(negative pivot {pivot:.6f} at row {j})"
            )
        if pivot <= tol:
            # Zero pivot: the remaining column must vanish
            for i in range(j + 1, n):
                residual = matrix[i, j] - np.dot(L[i, :j], L[j, :j])
                if abs(residual) > np.sqrt(tol):
                    raise InvalidCorrelationMatrix(
                        f"correlation matrix is not positive semi-definite "
                        f"(row {i} inconsistent with degenerate row {j})"
                    )
            continue
        d = np.sqrt(pivot)
        L[j, j] = d
        for i in range(j + 1, n):
            L[i, j] = (matrix[i, j] - np.dot(L[i, :j], L[j, :j])) / d
    return L


class CorrelationFactorizer:
    """
    Validated correlation matrix and its lower-triangular factor.

    Parameters
    ----------
    matrix : array-like, shape (M, M)
        Correlation matrix, ordered like `asset_keys`.
    asset_keys : Sequence[str], optional
        Asset-class ordering; when given, M must equal its length.
    tol : float
        Tolerance for symmetry, unit diagonal and pivots.

    Attributes
    ----------
    matrix : np.ndarray
        Validated copy of the input (read-only).
    factor : np.ndarray
        Lower-triangular L with L @ L.T ≈ matrix (read-only).

    Examples
    --------
    >>> f = CorrelationFactorizer([[1.0, 0.5], [0.5, 1.0]])
    >>> np.allclose(f.reconstruct(), [[1.0, 0.5], [0.5, 1.0]])
    True
    >>> CorrelationFactorizer([[1.0, 2.0], [2.0, 1.0]])
    Traceback (most recent call last):
    ...
    InvalidCorrelationMatrix: correlation entries must lie in [-1, 1]
    """

    def __init__(
        self,
        matrix,
        asset_keys: Optional[Sequence[str]] = None,
        tol: float = CORRELATION_TOLERANCE,
    ):
        try:
            rho = np.array(matrix, dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidCorrelationMatrix(f"correlation matrix is not numeric/rectangular: {exc}") from exc

        self._validate(rho, asset_keys, tol)
        # Symmetrize away round-off before factoring
        rho = 0.5 * (rho + rho.T)

        self.asset_keys = tuple(asset_keys) if asset_keys is not None else None
        self.tol = tol
        self.matrix = rho
        self.factor = self._factor(rho, tol)
        self.matrix.setflags(write=False)
        self.factor.setflags(write=False)

    @staticmethod
    def _validate(rho: np.ndarray, asset_keys, tol: float) -> None:
        """Validate shape, finiteness, symmetry, diagonal and bounds."""
        if rho.ndim != 2 or rho.shape[0] != rho.shape[1] or rho.shape[0] == 0:
            raise InvalidCorrelationMatrix(
                f"correlation matrix must be square and non-empty (got shape {rho.shape})"
            )
        if asset_keys is not None and rho.shape[0] != len(asset_keys):
            raise InvalidCorrelationMatrix(
                f"correlation matrix is {rho.shape[0]}x{rho.shape[1]} "
                f"but there are {len(asset_keys)} asset classes"
            )
        if not np.all(np.isfinite(rho)):
            raise InvalidCorrelationMatrix("correlation matrix contains non-finite entries")
        if not np.allclose(rho, rho.T, atol=tol, rtol=0.0):
            raise InvalidCorrelationMatrix("correlation matrix must be symmetric")
        if not np.allclose(np.diag(rho), 1.0, atol=tol, rtol=0.0):
            raise InvalidCorrelationMatrix("correlation matrix diagonal must be 1.0")
        if np.any(np.abs(rho) > 1.0 + tol):
            raise InvalidCorrelationMatrix("correlation entries must lie in [-1, 1]")

    @staticmethod
    def _factor(rho: np.ndarray, tol: float) -> np.ndarray:
        try:
            return cholesky(rho, lower=True)
        except LinAlgError:
            # Singular: PSD only if every zero pivot has a vanishing column
            return cholesky_psd(rho, tol)

    @property
    def size(self) -> int:
        return self.matrix.shape[0]

    def reconstruct(self) -> np.ndarray:
        """Return L @ L.T."""
        return self.factor @ self.factor.T

    def correlate(self, z: np.ndarray) -> np.ndarray:
        """
        Map independent normals to correlated ones.

        Parameters
        ----------
        z : np.ndarray, shape (..., M)

        Returns
        -------
        np.ndarray, shape (..., M)
            z @ L.T, i.e. L @ z for each trailing vector.
        """
        return z @ self.factor.T

    def __repr__(self) -> str:
        kind = "eye" if np.allclose(self.matrix, np.eye(self.size)) else "custom"
        return f"CorrelationFactorizer(M={self.size}, ρ={kind})"
