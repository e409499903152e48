# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Krylov Eigensolver.

This module finds extremal eigenpairs of a linear map given only through its action on a tensor. Hermitian maps
use restarted Lanczos with full reorthogonalization; other maps use restarted Arnoldi. The inner loops run in the
numba kernels of ``lanczos_numba``.

The solver works on tensors of any shape: the start vector is flattened internally and every vector handed to
the linear map has the shape of ``x0``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import scipy.linalg

from .lanczos_numba import normalize_and_store, orthogonalize_step, reorthogonalize

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

VALID_WHICH = ("SR", "LR", "LM")

# Relative size of a Krylov residual that signals an invariant subspace
BREAKDOWN_TOL = 1e-13


def _select(values: NDArray[np.number], which: str) -> NDArray[np.intp]:
    if which == "SR":
        return np.argsort(values.real, kind="stable")
    if which == "LR":
        return np.argsort(-values.real, kind="stable")
    return np.argsort(-np.abs(values), kind="stable")


def _lanczos(
    apply: Callable[[NDArray[np.complex128]], NDArray[np.complex128]],
    x: NDArray[np.complex128],
    krylovdim: int,
) -> tuple[NDArray[np.float64], NDArray[np.complex128], NDArray[np.complex128], float]:
    """One Lanczos cycle from the normalized vector x.

    Returns:
        Ritz values, Ritz coefficients (columns), the Krylov basis and the final off-diagonal element.
    """
    n = x.size
    m = min(krylovdim, n)
    v = np.zeros((n, m + 1), dtype=np.complex128, order="F")
    v[:, 0] = x
    alpha = np.zeros(m, dtype=np.float64)
    beta = np.zeros(m, dtype=np.float64)
    scratch = np.zeros(m + 1, dtype=np.complex128)
    size = m
    for j in range(m):
        w = apply(v[:, j])
        orthogonalize_step(v, w, j, alpha, beta)
        scratch[:] = 0
        bj = reorthogonalize(v, w, j + 1, scratch)
        beta[j] = bj
        if bj <= BREAKDOWN_TOL * max(1.0, abs(alpha[j])):
            size = j + 1
            beta[j] = 0.0
            break
        normalize_and_store(v, w, j, bj)
    if size == 1:
        vals = alpha[:1].copy()
        coeffs = np.ones((1, 1), dtype=np.complex128)
    else:
        vals, coeffs = scipy.linalg.eigh_tridiagonal(alpha[:size], beta[: size - 1])
    return vals, coeffs.astype(np.complex128), v[:, :size], float(beta[size - 1])


def _arnoldi(
    apply: Callable[[NDArray[np.complex128]], NDArray[np.complex128]],
    x: NDArray[np.complex128],
    krylovdim: int,
) -> tuple[NDArray[np.complex128], NDArray[np.complex128], NDArray[np.complex128], float]:
    """One Arnoldi cycle from the normalized vector x.

    Returns:
        Ritz values, Ritz coefficients (columns), the Krylov basis and the final subdiagonal element.
    """
    n = x.size
    m = min(krylovdim, n)
    v = np.zeros((n, m + 1), dtype=np.complex128, order="F")
    v[:, 0] = x
    h = np.zeros((m + 1, m), dtype=np.complex128)
    size = m
    for j in range(m):
        w = apply(v[:, j])
        column = np.zeros(m + 1, dtype=np.complex128)
        reorthogonalize(v, w, j + 1, column)
        # second pass keeps the basis orthonormal to working precision
        bj = reorthogonalize(v, w, j + 1, column)
        h[: j + 1, j] = column[: j + 1]
        h[j + 1, j] = bj
        if bj <= BREAKDOWN_TOL * max(1.0, float(np.max(np.abs(column)))):
            size = j + 1
            h[j + 1, j] = 0.0
            break
        normalize_and_store(v, w, j, bj)
    vals, coeffs = scipy.linalg.eig(h[:size, :size])
    return vals, coeffs, v[:, :size], float(abs(h[size, size - 1]))


def eigsolve(
    linear_map: Callable[[NDArray[np.complex128]], NDArray[np.complex128]],
    x0: NDArray[np.complex128],
    howmany: int = 1,
    which: str = "SR",
    *,
    ishermitian: bool = True,
    tol: float = 1e-14,
    krylovdim: int = 3,
    maxiter: int = 1,
    verbosity: int = 0,
) -> tuple[NDArray[np.number], list[NDArray[np.complex128]]]:
    """Extremal eigenpairs of a linear map.

    Every cycle builds a Krylov space of dimension ``krylovdim`` from the current vector; the next cycle restarts
    from the best Ritz vector. Iteration stops after ``maxiter`` cycles or once the residual norm of the best Ritz
    pair drops below ``tol``. A result that did not reach ``tol`` is returned as is.

    Args:
        linear_map: Function applying the operator to a tensor of the shape of ``x0``.
        x0: Start vector.
        howmany: Number of eigenpairs to return, at most the final Krylov dimension.
        which: "SR" (smallest real part), "LR" (largest real part) or "LM" (largest magnitude).
        ishermitian: Use Lanczos (True) or Arnoldi (False).
        tol: Residual norm at which the iteration stops.
        krylovdim: Dimension of the Krylov space per cycle.
        maxiter: Maximal number of cycles.
        verbosity: 0 silent, 1 summary, 2 every cycle, written to the module logger.

    Returns:
        values: The selected eigenvalues (real for Hermitian maps).
        vectors: The matching normalized eigenvectors, shaped like ``x0``.

    Raises:
        ValueError: For an invalid ``which``, non-positive dimensions or a vanishing start vector.
    """
    if which not in VALID_WHICH:
        msg = f"which must be one of {VALID_WHICH}, got {which!r}."
        raise ValueError(msg)
    if krylovdim < 1 or maxiter < 1 or howmany < 1:
        msg = "krylovdim, maxiter and howmany must be positive."
        raise ValueError(msg)
    shape = x0.shape
    x = np.array(x0, dtype=np.complex128).ravel()
    nrm = np.linalg.norm(x)
    if nrm == 0:
        msg = "The start vector must not vanish."
        raise ValueError(msg)
    x /= nrm

    def apply(vec: NDArray[np.complex128]) -> NDArray[np.complex128]:
        out = linear_map(np.ascontiguousarray(vec).reshape(shape))
        return np.array(out, dtype=np.complex128).ravel()

    cycle = _lanczos if ishermitian else _arnoldi
    for iteration in range(1, maxiter + 1):
        vals, coeffs, basis, last = cycle(apply, x, krylovdim)
        order = _select(vals, which)
        best = order[0]
        residual = last * abs(coeffs[-1, best])
        x = basis @ coeffs[:, best]
        x /= np.linalg.norm(x)
        if verbosity >= 2:
            logger.info("eigsolve cycle %d: value=%s residual=%.3e", iteration, vals[best], residual)
        if residual < tol:
            break
    if verbosity >= 1:
        logger.info("eigsolve finished after %d cycles with residual %.3e", iteration, residual)

    selected = order[: min(howmany, len(order))]
    vectors = []
    for k in selected:
        vec = basis @ coeffs[:, k]
        vectors.append((vec / np.linalg.norm(vec)).reshape(shape))
    values = vals[selected]
    if ishermitian:
        values = np.real(values)
    return values, vectors
