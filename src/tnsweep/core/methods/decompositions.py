# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tensor Network Decompositions.

This module implements the QR decompositions used to canonicalize MPS tensors, the truncation rule shared by the
MPO compiler and the DMRG engine, and the truncated factorization of an optimized two-site tensor back into two
MPS tensors (``replace_bond``).

Two-site tensors have index order (phys_i, phys_j, chi_left, chi_right).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from ..data_structures.networks import MPS


@dataclass
class Spectrum:
    """Truncation record of one factorization.

    Attributes:
        eigs: Kept density-matrix eigenvalues (squared singular values), normalized to the total weight.
        truncerr: Discarded weight relative to the total weight.
    """

    eigs: NDArray[np.float64]
    truncerr: float

    @property
    def dim(self) -> int:
        """Number of kept states."""
        return len(self.eigs)

    def entropy(self) -> float:
        """Von Neumann entropy of the kept spectrum.

        Returns:
            -sum p log p over the normalized kept weights.
        """
        p = self.eigs[self.eigs > 0]
        p = p / np.sum(p)
        return float(-np.sum(p * np.log(p)))


def right_qr(mps_tensor: NDArray[np.complex128]) -> tuple[NDArray[np.complex128], NDArray[np.complex128]]:
    """Right QR.

    Performs the QR decomposition of an MPS tensor moving to the right.

    Args:
        mps_tensor: The tensor to be decomposed.

    Returns:
        q_tensor: The Q tensor with the left virtual leg and the physical
            leg (phys,left,new).
        r_mat: The R matrix with the right virtual leg (new,right).
    """
    phys, left, right = mps_tensor.shape
    q_mat, r_mat = np.linalg.qr(mps_tensor.reshape(phys * left, right))
    return q_mat.reshape(phys, left, -1), r_mat


def left_qr(mps_tensor: NDArray[np.complex128]) -> tuple[NDArray[np.complex128], NDArray[np.complex128]]:
    """Left QR.

    Performs the QR decomposition of an MPS tensor moving to the left.

    Args:
        mps_tensor: The tensor to be decomposed.

    Returns:
        q_tensor: The Q tensor with the physical leg and the right virtual
            leg (phys,new,right).
        r_mat: The R matrix with the left virtual leg (left,new).
    """
    phys, left, right = mps_tensor.shape
    mat = mps_tensor.transpose(0, 2, 1).reshape(phys * right, left)
    q_mat, r_mat = np.linalg.qr(mat)
    q_tensor = q_mat.reshape(phys, right, -1).transpose(0, 2, 1)
    return q_tensor, r_mat.T


def truncation_rank(
    weights: NDArray[np.float64],
    *,
    cutoff: float,
    maxdim: int | None = None,
    mindim: int = 1,
) -> tuple[int, float]:
    """Number of states to keep from a descending spectrum.

    The smallest weights are discarded as long as the discarded fraction of the total weight stays at or below
    ``cutoff``; the result is then clipped to ``[mindim, maxdim]`` and never exceeds the number of weights.

    Args:
        weights: Non-negative weights sorted in descending order.
        cutoff: Largest allowed discarded weight relative to the total weight.
        maxdim: Upper bound on the number of kept states.
        mindim: Lower bound on the number of kept states.

    Returns:
        keep: Number of kept states.
        truncerr: Discarded weight relative to the total weight.
    """
    n = len(weights)
    if n == 0:
        return 0, 0.0
    total = float(np.sum(weights))
    keep = n if maxdim is None else min(n, maxdim)
    lower = max(1, min(mindim, n))
    if total <= 0.0:
        return max(min(keep, lower), 1), 0.0
    discarded = float(np.sum(weights[keep:]))
    while keep > lower and (discarded + weights[keep - 1]) / total <= cutoff:
        discarded += float(weights[keep - 1])
        keep -= 1
    keep = max(keep, lower)
    return keep, discarded / total


def _svd_factors(
    theta_mat: NDArray[np.complex128],
    *,
    cutoff: float,
    maxdim: int | None,
    mindim: int,
    ortho: str,
) -> tuple[NDArray[np.complex128], NDArray[np.complex128], Spectrum]:
    u_mat, s_vec, v_mat = np.linalg.svd(theta_mat, full_matrices=False)
    weights = s_vec**2
    keep, truncerr = truncation_rank(weights, cutoff=cutoff, maxdim=maxdim, mindim=mindim)
    u_mat = u_mat[:, :keep]
    s_vec = s_vec[:keep]
    v_mat = v_mat[:keep, :]
    if ortho == "left":
        left, right = u_mat, s_vec[:, None] * v_mat
    else:
        left, right = u_mat * s_vec, v_mat
    return left, right, Spectrum(weights[:keep] / np.sum(weights), truncerr)


def _eigen_factors(
    theta_mat: NDArray[np.complex128],
    *,
    cutoff: float,
    maxdim: int | None,
    mindim: int,
    ortho: str,
    eigen_perturbation: NDArray[np.complex128] | None,
) -> tuple[NDArray[np.complex128], NDArray[np.complex128], Spectrum]:
    # density matrix of the side that becomes orthonormal
    rho = theta_mat @ theta_mat.conj().T if ortho == "left" else theta_mat.T @ theta_mat.conj()
    if eigen_perturbation is not None:
        rho = rho + eigen_perturbation
    rho = 0.5 * (rho + rho.conj().T)
    evals, evecs = np.linalg.eigh(rho)
    order = np.argsort(evals)[::-1]
    evals = np.clip(evals[order], 0.0, None)
    evecs = evecs[:, order]
    keep, truncerr = truncation_rank(evals, cutoff=cutoff, maxdim=maxdim, mindim=mindim)
    evecs = evecs[:, :keep]
    total = np.sum(evals)
    eigs = evals[:keep] / total if total > 0 else evals[:keep]
    if ortho == "left":
        left = evecs
        right = evecs.conj().T @ theta_mat
    else:
        right = evecs.T
        left = theta_mat @ evecs.conj()
    return left, right, Spectrum(eigs, truncerr)


def replace_bond(
    psi: MPS,
    bond: int,
    phi: NDArray[np.complex128],
    *,
    maxdim: int | None = None,
    mindim: int = 1,
    cutoff: float = 0.0,
    eigen_perturbation: NDArray[np.complex128] | None = None,
    ortho: str = "left",
    which_decomp: str = "automatic",
    normalize: bool = True,
) -> Spectrum:
    """Factorize a two-site tensor into the MPS tensors at ``bond`` and ``bond + 1``.

    With ``ortho="left"`` the tensor at ``bond`` becomes left-orthonormal and the orthogonality center moves to
    ``bond + 1``; with ``ortho="right"`` the tensor at ``bond + 1`` becomes right-orthonormal and the center stays
    at ``bond``.

    Args:
        psi: State whose tensors are replaced in place.
        bond: Left site of the bond.
        phi: Two-site tensor of shape (phys_i, phys_j, chi_left, chi_right).
        maxdim: Largest allowed new bond dimension.
        mindim: Smallest new bond dimension, if the rank permits.
        cutoff: Discarded-weight threshold relative to the total weight.
        eigen_perturbation: Density-matrix correction added before diagonalization (noise term).
        ortho: "left" or "right".
        which_decomp: "automatic", "svd" or "eigen". "automatic" uses the density-matrix decomposition only when a
            perturbation is supplied.
        normalize: Rescale the orthogonality center to unit norm.

    Returns:
        The truncation spectrum.

    Raises:
        ValueError: For an invalid ``ortho`` or ``which_decomp`` value, or an SVD request with a perturbation.
    """
    if ortho not in {"left", "right"}:
        msg = f"ortho must be 'left' or 'right', got {ortho!r}."
        raise ValueError(msg)
    if which_decomp not in {"automatic", "svd", "eigen"}:
        msg = f"which_decomp must be 'automatic', 'svd' or 'eigen', got {which_decomp!r}."
        raise ValueError(msg)
    if which_decomp == "svd" and eigen_perturbation is not None:
        msg = "A noise perturbation requires the density-matrix ('eigen') decomposition."
        raise ValueError(msg)
    use_eigen = which_decomp == "eigen" or (which_decomp == "automatic" and eigen_perturbation is not None)

    phys_i, phys_j, left_dim, right_dim = phi.shape
    theta_mat = phi.transpose(0, 2, 1, 3).reshape(phys_i * left_dim, phys_j * right_dim)
    if use_eigen:
        left, right, spec = _eigen_factors(
            theta_mat,
            cutoff=cutoff,
            maxdim=maxdim,
            mindim=mindim,
            ortho=ortho,
            eigen_perturbation=eigen_perturbation,
        )
    else:
        left, right, spec = _svd_factors(theta_mat, cutoff=cutoff, maxdim=maxdim, mindim=mindim, ortho=ortho)

    if normalize:
        center = right if ortho == "left" else left
        nrm = np.linalg.norm(center)
        if nrm > 0:
            center /= nrm

    keep = left.shape[1]
    psi.tensors[bond] = left.reshape(phys_i, left_dim, keep).astype(np.complex128)
    psi.tensors[bond + 1] = right.reshape(keep, phys_j, right_dim).transpose(1, 0, 2).astype(np.complex128)
    return spec


def merge_two_sites(left: NDArray[np.complex128], right: NDArray[np.complex128]) -> NDArray[np.complex128]:
    """Contract two neighboring MPS tensors over their shared bond.

    Returns:
        Two-site tensor of shape (phys_i, phys_j, chi_left, chi_right).
    """
    return oe.contract("abc,dce->adbe", left, right)
