"""
Linear-algebra primitives shared by the positioning filters.

Provides:
- LU-based matrix inversion with explicit singularity detection
- Column-by-column Cholesky factorization with positive-definite repair
- Eigenvalue-based repair of (numerically) indefinite covariance matrices
- Gaussian sampling helpers driven by an injected random generator

The repair routines keep the real-time loop alive when rounding drift makes a
covariance matrix lose positive-definiteness. They are heuristics: the result
is close to, but not the nearest, positive-definite matrix.
"""

import warnings
from typing import Optional, Union

import numpy as np
from scipy.linalg import LinAlgWarning, lu_factor, lu_solve

from indoorloc.exceptions import NumericalDegeneracyWarning, SingularMatrixError

# Pivots smaller than this fraction of the largest entry are treated as zero
SINGULAR_PIVOT_RTOL = 1e-12

# Eigenvalues below the floor are replaced when repairing a covariance
EIGENVALUE_FLOOR = 1e-10
EIGENVALUE_REPLACEMENT = 1e-6

RandomSource = Union[None, int, np.random.Generator]


def _as_square(matrix: np.ndarray, name: str = "matrix") -> np.ndarray:
    A = np.asarray(matrix, dtype=float)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError(f"{name} must be square, got shape {A.shape}")
    return A


def invert(matrix: np.ndarray) -> np.ndarray:
    """
    Invert a square matrix via LU factorization with partial pivoting.

    Args:
        matrix: Square matrix (N×N).

    Returns:
        Inverse matrix (N×N).

    Raises:
        ValueError: If the matrix is not square.
        SingularMatrixError: If the matrix has non-finite entries or the LU
            factorization produces a pivot that is zero relative to the
            largest matrix entry.

    Example:
        >>> A = np.array([[4.0, 7.0], [2.0, 6.0]])
        >>> np.allclose(invert(A) @ A, np.eye(2))
        True
    """
    A = _as_square(matrix)

    if not np.all(np.isfinite(A)):
        raise SingularMatrixError("Matrix contains non-finite entries")

    scale = np.max(np.abs(A)) if A.size else 0.0
    if scale == 0.0:
        raise SingularMatrixError("Cannot invert an empty or all-zero matrix")

    # lu_factor only warns on exact zeros; the pivot check below covers both
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", LinAlgWarning)
        lu, piv = lu_factor(A, check_finite=False)

    pivots = np.abs(np.diag(lu))
    k = int(np.argmin(pivots))
    if pivots[k] <= SINGULAR_PIVOT_RTOL * scale:
        raise SingularMatrixError(
            f"Matrix is singular to working precision "
            f"(pivot {k} = {lu[k, k]:.3e}, scale {scale:.3e})"
        )

    return lu_solve((lu, piv), np.eye(A.shape[0]), check_finite=False)


def _cholesky_columns(A: np.ndarray, clamp: bool = False) -> Optional[np.ndarray]:
    """
    Column-by-column Cholesky factorization.

    Returns None as soon as a diagonal square-root argument is not positive,
    unless ``clamp`` is set, in which case that column is zeroed instead.
    """
    n = A.shape[0]
    L = np.zeros_like(A)

    for j in range(n):
        # L_jj² = A_jj - Σ_k L_jk²
        arg = A[j, j] - L[j, :j] @ L[j, :j]
        if not np.isfinite(arg) or arg <= 0.0:
            if not clamp:
                return None
            continue

        L[j, j] = np.sqrt(arg)
        for i in range(j + 1, n):
            L[i, j] = (A[i, j] - L[i, :j] @ L[j, :j]) / L[j, j]

    return L


def cholesky_factor(matrix: np.ndarray) -> np.ndarray:
    """
    Lower-triangular Cholesky factor L with L·Lᵀ = matrix.

    If the matrix is not positive definite (a diagonal square-root argument
    is not positive), the matrix is passed through
    :func:`repair_to_positive_definite` and the factorization is retried
    exactly once. The retry never fails: a remaining non-positive pivot
    leaves its column at zero.

    Args:
        matrix: Symmetric matrix (N×N).

    Returns:
        Lower-triangular factor (N×N).

    Raises:
        ValueError: If the matrix is not square.

    Example:
        >>> S = np.array([[4.0, 2.0], [2.0, 3.0]])
        >>> L = cholesky_factor(S)
        >>> np.allclose(L @ L.T, S)
        True
    """
    A = _as_square(matrix)

    L = _cholesky_columns(A)
    if L is not None:
        return L

    warnings.warn(
        "Matrix is not positive definite; repairing eigenvalues before "
        "Cholesky factorization.",
        NumericalDegeneracyWarning,
    )
    return _cholesky_columns(repair_to_positive_definite(A), clamp=True)


def repair_to_positive_definite(
    matrix: np.ndarray,
    floor: float = EIGENVALUE_FLOOR,
    replacement: float = EIGENVALUE_REPLACEMENT,
) -> np.ndarray:
    """
    Rebuild a symmetric matrix with small or negative eigenvalues lifted.

    The matrix is eigen-decomposed as V·D·V⁻¹, every eigenvalue below
    ``floor`` is replaced by ``replacement`` and the product is recomputed.
    The eigenbasis of a symmetric matrix is orthonormal, so V⁻¹ = Vᵀ.

    This is a heuristic, not the Frobenius-nearest positive-definite matrix.
    Eigenvalues already above the floor are left untouched.

    Args:
        matrix: Symmetric matrix (N×N); the symmetric part is used.
        floor: Eigenvalues below this value are considered degenerate.
        replacement: Value assigned to degenerate eigenvalues.

    Returns:
        Symmetric positive-definite matrix (N×N).
    """
    A = _as_square(matrix)
    A = 0.5 * (A + A.T)

    eigenvalues, V = np.linalg.eigh(A)
    fixed = np.where(eigenvalues < floor, replacement, eigenvalues)

    repaired = V @ np.diag(fixed) @ V.T
    return 0.5 * (repaired + repaired.T)


def enforce_covariance(P: np.ndarray) -> np.ndarray:
    """
    Symmetrize a covariance matrix and repair it if it became indefinite.

    Args:
        P: Covariance matrix (N×N).

    Returns:
        Symmetric positive semi-definite covariance (N×N).
    """
    P = _as_square(P, "Covariance")
    P = 0.5 * (P + P.T)

    if np.min(np.linalg.eigvalsh(P)) < 0.0:
        warnings.warn(
            "Covariance lost positive semi-definiteness; repairing eigenvalues.",
            NumericalDegeneracyWarning,
        )
        P = repair_to_positive_definite(P)

    return P


def as_generator(rng: RandomSource = None) -> np.random.Generator:
    """
    Normalize a random source into a numpy Generator.

    Args:
        rng: None (fresh entropy), an integer seed, or an existing Generator.

    Returns:
        numpy.random.Generator instance.
    """
    if isinstance(rng, np.random.Generator):
        return rng
    if rng is None or isinstance(rng, (int, np.integer)):
        return np.random.default_rng(rng)
    raise TypeError(f"rng must be None, an int seed or a numpy Generator, got {type(rng)}")


def sample_gaussian(
    mean: np.ndarray,
    factor: np.ndarray,
    rng: np.random.Generator,
    size: Optional[int] = None,
) -> np.ndarray:
    """
    Draw samples mean + factor·z with z ~ N(0, I).

    The samples have covariance factor·factorᵀ. ``factor`` may be
    rectangular (n×k), e.g. a noise-shaping matrix G.

    Args:
        mean: Mean vector (n,) or per-sample means (size, n).
        factor: Matrix square root of the covariance (n×k).
        rng: Random generator.
        size: Number of samples; None returns a single vector.

    Returns:
        Samples of shape (n,) or (size, n).
    """
    factor = np.atleast_2d(np.asarray(factor, dtype=float))
    k = factor.shape[1]

    if size is None:
        z = rng.standard_normal(k)
        return np.asarray(mean, dtype=float) + factor @ z

    z = rng.standard_normal((size, k))
    return np.asarray(mean, dtype=float) + z @ factor.T
