"""Dense linear solver for the mesh-current system.

Each step produces
    A * X = -B
where A holds the coefficients of the free mesh currents and B the constant
terms stamped by components. The sign flip is applied once, here.

Elimination is done in natural row order without row exchanges, so a
near-zero diagonal entry fails even when pivoting could have rescued the
system.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jax import Array

PIVOT_TOLERANCE = 1e-9

# Rounding allowance per unknown, in units of machine epsilon times max|A|
ROUNDING_FACTOR = 8


class SingularSystemError(ValueError):
    """Raised when a pivot falls below the solver tolerance during elimination."""

    def __init__(self, row: int):
        self.row = row
        super().__init__(
            f"Singular mesh system: pivot at row {row} is below tolerance. "
            f"Check that every free mesh has a resistive or inductive path."
        )


def pivot_tolerance(a: Array) -> Array:
    """
    Smallest pivot magnitude accepted for matrix `a`.

    PIVOT_TOLERANCE, raised to the rounding level of a's dtype:
        max(PIVOT_TOLERANCE, ROUNDING_FACTOR * n * eps * max|A|)
    In float32 rounding alone leaves residual pivots near 1e-7 on
    singular systems, far above PIVOT_TOLERANCE.
    """
    n = a.shape[0]
    eps = jnp.finfo(a.dtype).eps
    scale = jnp.max(jnp.abs(a)) if a.size else jnp.array(0.0, dtype=a.dtype)
    return jnp.maximum(PIVOT_TOLERANCE, ROUNDING_FACTOR * n * eps * scale)


@jax.jit
def _eliminate(a: Array, b: Array) -> tuple[Array, Array]:
    """
    Forward elimination and back substitution.

    Returns (x, bad_row) where bad_row is the first row whose pivot was
    below tolerance, or -1.
    """
    n = b.shape[0]
    b = -b
    bad_row = jnp.array(-1, dtype=jnp.int32)
    tol = pivot_tolerance(a)

    # Forward pass
    for i in range(n):
        pivot = a[i, i]
        is_bad = jnp.abs(pivot) < tol
        bad_row = jnp.where((bad_row < 0) & is_bad, i, bad_row)

        a = a.at[i, i:].set(a[i, i:] / pivot)
        b = b.at[i].set(b[i] / pivot)

        factors = a[i + 1:, i]
        a = a.at[i + 1:, i:].add(-jnp.outer(factors, a[i, i:]))
        b = b.at[i + 1:].add(-factors * b[i])

    # Back substitution
    x = jnp.zeros(n, dtype=b.dtype)
    for i in range(n - 1, -1, -1):
        x = x.at[i].set(b[i] - jnp.dot(a[i, i + 1:], x[i + 1:]))

    return x, bad_row


def solve_linear_system(a, b) -> Array:
    """
    Solve A * X = -B by Gaussian elimination.

    Args:
        a: (n, n) coefficient matrix
        b: (n,) constant vector (as stamped, before the sign flip)

    Returns:
        (n,) solution vector. An empty system returns an empty vector.

    Raises:
        SingularSystemError: if any pivot magnitude is below pivot_tolerance(a)
    """
    dtype = jnp.result_type(float)
    a = jnp.asarray(a, dtype=dtype)
    b = jnp.asarray(b, dtype=dtype)

    n = b.shape[0]
    if a.shape != (n, n):
        raise ValueError(f"Matrix shape {a.shape} does not match vector length {n}")
    if n == 0:
        return jnp.zeros(0, dtype=dtype)

    x, bad_row = _eliminate(a, b)
    bad_row = int(bad_row)
    if bad_row >= 0:
        raise SingularSystemError(bad_row)
    return x
