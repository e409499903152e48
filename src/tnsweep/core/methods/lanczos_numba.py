# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Numba-accelerated Krylov kernels.

The kernels operate in place on a column-major basis matrix ``v`` of shape (N, m + 1) whose first columns hold
the orthonormal Krylov vectors. All arrays are expected to be complex128.
"""

from __future__ import annotations

import numpy as np
from numba import jit


@jit(nopython=True, cache=True, fastmath=True)
def orthogonalize_step(
    v: np.ndarray,
    w: np.ndarray,
    j: int,
    alpha: np.ndarray,
    beta: np.ndarray,
) -> float:
    """Three-term Lanczos recurrence.

    Computes alpha[j] = <v_j, w>, removes the components along v_j and v_{j-1} from w and stores
    beta[j] = ||w||.

    Args:
        v: (N, m) matrix of Lanczos vectors.
        w: (N,) candidate vector ``H v_j``. Modified in-place.
        j: Current iteration index.
        alpha: (m,) diagonal of the tridiagonal matrix.
        beta: (m,) off-diagonal of the tridiagonal matrix; beta[j - 1] is read.

    Returns:
        float: The norm of the orthogonalized vector.
    """
    n = w.size
    overlap = 0j
    for i in range(n):
        overlap += np.conj(v[i, j]) * w[i]
    aj = overlap.real
    alpha[j] = aj
    for i in range(n):
        w[i] = w[i] - aj * v[i, j]
    if j > 0:
        b_prev = beta[j - 1]
        for i in range(n):
            w[i] = w[i] - b_prev * v[i, j - 1]

    norm_sq = 0.0
    for i in range(n):
        val = w[i]
        norm_sq += val.real * val.real + val.imag * val.imag
    bj = np.sqrt(norm_sq)
    if j < len(beta):
        beta[j] = bj
    return bj


@jit(nopython=True, cache=True, fastmath=True)
def reorthogonalize(v: np.ndarray, w: np.ndarray, k: int, coeffs: np.ndarray) -> float:
    """Classical Gram-Schmidt pass of w against the first k columns of v.

    The removed overlaps are added to ``coeffs[:k]`` so the kernel can be used both for full
    reorthogonalization in Lanczos and for the Hessenberg column of Arnoldi.

    Args:
        v: (N, m) matrix of orthonormal basis vectors.
        w: (N,) vector. Modified in-place.
        k: Number of basis vectors to project out.
        coeffs: (>= k,) accumulator of the overlaps <v_i, w>.

    Returns:
        float: The norm of w after the projection.
    """
    n = w.size
    for col in range(k):
        overlap = 0j
        for i in range(n):
            overlap += np.conj(v[i, col]) * w[i]
        coeffs[col] += overlap
        for i in range(n):
            w[i] = w[i] - overlap * v[i, col]

    norm_sq = 0.0
    for i in range(n):
        val = w[i]
        norm_sq += val.real * val.real + val.imag * val.imag
    return np.sqrt(norm_sq)


@jit(nopython=True, cache=True, fastmath=True)
def normalize_and_store(v: np.ndarray, w: np.ndarray, j: int, bj: float) -> None:
    """Normalize w by bj and store it in v[:, j + 1].

    Nothing is stored for a vanishing norm.
    """
    if bj > 0:
        inv_bj = 1.0 / bj
        for i in range(w.size):
            v[i, j + 1] = w[i] * inv_bj
