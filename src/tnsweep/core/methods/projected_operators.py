# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Projected Operators.

This module restricts a chain operator to the two-site subspace of a DMRG bond update. The projectors cache the
partial contractions (environments) of the chain to the left and to the right of the active bond and reuse them
while the active bond moves.

- ``ProjMPO``: one MPO.
- ``ProjMPOSum``: a sum of MPOs, each projected separately.
- ``ProjMPO_MPS``: an MPO plus penalty projectors ``weight * |M><M|`` onto previously found states.

All projectors share ``position(psi, pos)``, ``product(phi)`` (also available as ``__call__``) and
``noiseterm(phi, ortho)``. Two-site tensors have index order (phys_i, phys_j, chi_left, chi_right) and
environments have index order (ket_bond, mpo_bond, bra_bond).

The cache assumes DMRG sweeping: after ``position(psi, pos)`` the tensors to the left of ``pos`` and to the right
of ``pos + 1`` are only modified on the way back to them, so blocks on the side that did not move stay valid.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

    from ..data_structures.networks import MPO, MPS


def update_left_environment(
    ket: NDArray[np.complex128],
    bra: NDArray[np.complex128],
    op: NDArray[np.complex128],
    left_env: NDArray[np.complex128],
) -> NDArray[np.complex128]:
    """Absorb one site into a left operator block.

    Args:
        ket: MPS tensor (phys, chi_l, chi_r).
        bra: MPS tensor (phys, chi_l, chi_r), conjugated in the contraction.
        op: MPO tensor (phys_out, phys_in, w_l, w_r).
        left_env: Left operator block (ket_bond, mpo_bond, bra_bond).

    Returns:
        The left block including the site.
    """
    return oe.contract("awA,iab,oiwv,oAB->bvB", left_env, ket, op, np.conj(bra))


def update_right_environment(
    ket: NDArray[np.complex128],
    bra: NDArray[np.complex128],
    op: NDArray[np.complex128],
    right_env: NDArray[np.complex128],
) -> NDArray[np.complex128]:
    """Absorb one site into a right operator block.

    Args:
        ket: MPS tensor (phys, chi_l, chi_r).
        bra: MPS tensor (phys, chi_l, chi_r), conjugated in the contraction.
        op: MPO tensor (phys_out, phys_in, w_l, w_r).
        right_env: Right operator block (ket_bond, mpo_bond, bra_bond).

    Returns:
        The right block including the site.
    """
    return oe.contract("bvB,iab,oiwv,oAB->awA", right_env, ket, op, np.conj(bra))


def update_left_overlap(
    ket: NDArray[np.complex128], bra: NDArray[np.complex128], left_env: NDArray[np.complex128]
) -> NDArray[np.complex128]:
    """Absorb one site into a left overlap block of index order (bra_bond, ket_bond).

    Returns:
        The left overlap block including the site.
    """
    return oe.contract("ca,scd,sab->db", left_env, np.conj(bra), ket)


def update_right_overlap(
    ket: NDArray[np.complex128], bra: NDArray[np.complex128], right_env: NDArray[np.complex128]
) -> NDArray[np.complex128]:
    """Absorb one site into a right overlap block of index order (bra_bond, ket_bond).

    Returns:
        The right overlap block including the site.
    """
    return oe.contract("db,scd,sab->ca", right_env, np.conj(bra), ket)


class ProjMPO:
    """Two-site projection of an MPO.

    Attributes:
        H: The projected operator.
        lpos: Number of sites contained in the valid left block.
        rpos: First site contained in the valid right block.
    """

    nsite = 2

    def __init__(self, H: MPO) -> None:  # noqa: N803
        """Initializes the projector without any cached environment.

        Args:
            H: Operator to project.
        """
        self.H = H
        self.reset()

    @property
    def length(self) -> int:
        """Number of sites of the projected operator."""
        return self.H.length

    def reset(self) -> None:
        """Drop all cached environments."""
        trivial = np.ones((1, 1, 1), dtype=np.complex128)
        self._left: list[NDArray[np.complex128] | None] = [None] * (self.length + 1)
        self._right: list[NDArray[np.complex128] | None] = [None] * (self.length + 1)
        self._left[0] = trivial
        self._right[self.length] = trivial.copy()
        self.lpos = 0
        self.rpos = self.length
        self.pos = 0

    def position(self, psi: MPS, pos: int) -> ProjMPO:
        """Move the active bond to sites ``pos`` and ``pos + 1``.

        Left blocks are extended from the last valid one up to ``pos``; right blocks from the last valid one down
        to ``pos + 2``. Cached blocks on the side that did not move are reused.

        Args:
            psi: Current state.
            pos: Left site of the active bond.

        Returns:
            This projector.

        Raises:
            ValueError: If the state and operator lengths differ or the bond is out of range.
        """
        if psi.length != self.length:
            msg = "The lengths of the state and the operator must match."
            raise ValueError(msg)
        if not 0 <= pos <= self.length - self.nsite:
            msg = f"Bond position {pos} out of range for a chain of length {self.length}."
            raise ValueError(msg)
        self.lpos = min(self.lpos, pos)
        while self.lpos < pos:
            k = self.lpos
            self._left[k + 1] = update_left_environment(
                psi.tensors[k], psi.tensors[k], self.H.tensors[k], self._left[k]
            )
            self.lpos += 1
        self.rpos = max(self.rpos, pos + self.nsite)
        while self.rpos > pos + self.nsite:
            k = self.rpos - 1
            self._right[k] = update_right_environment(
                psi.tensors[k], psi.tensors[k], self.H.tensors[k], self._right[k + 1]
            )
            self.rpos -= 1
        self.pos = pos
        return self

    def left_environment(self) -> NDArray[np.complex128]:
        """Block of all sites left of the active bond.

        Returns:
            Left block (ket_bond, mpo_bond, bra_bond).
        """
        return self._left[self.pos]

    def right_environment(self) -> NDArray[np.complex128]:
        """Block of all sites right of the active bond.

        Returns:
            Right block (ket_bond, mpo_bond, bra_bond).
        """
        return self._right[self.pos + self.nsite]

    def product(self, phi: NDArray[np.complex128]) -> NDArray[np.complex128]:
        """Apply the projected operator to a two-site tensor.

        Args:
            phi: Two-site tensor (phys_i, phys_j, chi_left, chi_right).

        Returns:
            The tensor ``H_eff phi`` with the same shape.
        """
        return oe.contract(
            "awA,ijab,oiwv,pjvr,brB->opAB",
            self.left_environment(),
            phi,
            self.H.tensors[self.pos],
            self.H.tensors[self.pos + 1],
            self.right_environment(),
        )

    __call__ = product

    def noiseterm(self, phi: NDArray[np.complex128], ortho: str) -> NDArray[np.complex128]:
        """Density-matrix perturbation of the side that becomes orthonormal.

        The projected operator is applied to ``phi`` from the orthonormalized side only, leaving the MPO bond
        between the two sites open, and the result is traced over everything except that side.

        Args:
            phi: Two-site tensor (phys_i, phys_j, chi_left, chi_right).
            ortho: "left" or "right".

        Returns:
            Hermitian matrix of size (phys_i * chi_left) for "left" or (phys_j * chi_right) for "right".

        Raises:
            ValueError: For an invalid ``ortho`` value.
        """
        if ortho == "left":
            nt = oe.contract("awA,ijab,oiwv->oAvjb", self.left_environment(), phi, self.H.tensors[self.pos])
        elif ortho == "right":
            nt = oe.contract("ijab,pjvr,brB->pBiav", phi, self.H.tensors[self.pos + 1], self.right_environment())
        else:
            msg = f"ortho must be 'left' or 'right', got {ortho!r}."
            raise ValueError(msg)
        mat = nt.reshape(nt.shape[0] * nt.shape[1], -1)
        return mat @ mat.conj().T


class ProjMPOSum:
    """Two-site projection of a sum of MPOs.

    The MPOs are never added; each is projected separately and the products are summed.
    """

    nsite = 2

    def __init__(self, terms: Sequence[MPO]) -> None:
        """Initializes one ``ProjMPO`` per term.

        Args:
            terms: Operators of the sum, all of the same length.

        Raises:
            ValueError: If the sum is empty or the lengths differ.
        """
        if not terms:
            msg = "ProjMPOSum needs at least one MPO."
            raise ValueError(msg)
        if len({term.length for term in terms}) != 1:
            msg = "All MPOs of a sum must have the same length."
            raise ValueError(msg)
        self.terms = [ProjMPO(term) for term in terms]

    @property
    def length(self) -> int:
        """Number of sites of the projected operators."""
        return self.terms[0].length

    def reset(self) -> None:
        """Drop all cached environments."""
        for term in self.terms:
            term.reset()

    def position(self, psi: MPS, pos: int) -> ProjMPOSum:
        """Move the active bond of every term.

        Returns:
            This projector.
        """
        for term in self.terms:
            term.position(psi, pos)
        return self

    def product(self, phi: NDArray[np.complex128]) -> NDArray[np.complex128]:
        """Sum of the projected products of all terms.

        Returns:
            The tensor ``sum_k H_k,eff phi``.
        """
        result = self.terms[0].product(phi)
        for term in self.terms[1:]:
            result = result + term.product(phi)
        return result

    __call__ = product

    def noiseterm(self, phi: NDArray[np.complex128], ortho: str) -> NDArray[np.complex128]:
        """Sum of the perturbations of all terms.

        Returns:
            The summed density-matrix perturbation.
        """
        result = self.terms[0].noiseterm(phi, ortho)
        for term in self.terms[1:]:
            result = result + term.noiseterm(phi, ortho)
        return result


class ProjMPS:
    """Two-site projection of a state, ``|M><M|``, through cached overlap blocks."""

    nsite = 2

    def __init__(self, M: MPS) -> None:  # noqa: N803
        """Initializes the projector without any cached block.

        Args:
            M: State to project onto.
        """
        self.M = M
        self.reset()

    @property
    def length(self) -> int:
        """Number of sites of the state."""
        return self.M.length

    def reset(self) -> None:
        """Drop all cached blocks."""
        self._left: list[NDArray[np.complex128] | None] = [None] * (self.length + 1)
        self._right: list[NDArray[np.complex128] | None] = [None] * (self.length + 1)
        self._left[0] = np.ones((1, 1), dtype=np.complex128)
        self._right[self.length] = np.ones((1, 1), dtype=np.complex128)
        self.lpos = 0
        self.rpos = self.length
        self.pos = 0

    def position(self, psi: MPS, pos: int) -> ProjMPS:
        """Move the active bond, reusing cached overlap blocks.

        Returns:
            This projector.

        Raises:
            ValueError: If the state lengths differ.
        """
        if psi.length != self.length:
            msg = "The lengths of the state and the projected state must match."
            raise ValueError(msg)
        self.lpos = min(self.lpos, pos)
        while self.lpos < pos:
            k = self.lpos
            self._left[k + 1] = update_left_overlap(psi.tensors[k], self.M.tensors[k], self._left[k])
            self.lpos += 1
        self.rpos = max(self.rpos, pos + self.nsite)
        while self.rpos > pos + self.nsite:
            k = self.rpos - 1
            self._right[k] = update_right_overlap(psi.tensors[k], self.M.tensors[k], self._right[k + 1])
            self.rpos -= 1
        self.pos = pos
        return self

    def local_vector(self) -> NDArray[np.complex128]:
        """Component of ``|M>`` in the two-site space of the active bond.

        Returns:
            Tensor ``v`` (phys_i, phys_j, chi_left, chi_right) with ``<M|psi> = vdot(v, phi)``.
        """
        return oe.contract(
            "ca,icd,jde,eb->ijab",
            np.conj(self._left[self.pos]),
            self.M.tensors[self.pos],
            self.M.tensors[self.pos + 1],
            np.conj(self._right[self.pos + self.nsite]),
        )

    def product(self, phi: NDArray[np.complex128]) -> NDArray[np.complex128]:
        """Apply ``|M><M|`` restricted to the active bond.

        Returns:
            The projected tensor.
        """
        vec = self.local_vector()
        return vec * np.vdot(vec, phi)

    __call__ = product


class ProjMPO_MPS:  # noqa: N801
    """Two-site projection of ``H + weight * sum_i |M_i><M_i|``.

    Used to target excited states: each previously found state ``M_i`` is penalized by ``weight``.
    """

    nsite = 2

    def __init__(self, H: MPO, states: Sequence[MPS], weight: float = 1.0) -> None:  # noqa: N803
        """Initializes the projector.

        Args:
            H: Operator to project.
            states: States to penalize.
            weight: Penalty strength.

        Raises:
            ValueError: For a non-positive weight or states of the wrong length.
        """
        if weight <= 0:
            msg = f"The penalty weight must be positive, got {weight}."
            raise ValueError(msg)
        if any(state.length != H.length for state in states):
            msg = "The lengths of the penalized states and the operator must match."
            raise ValueError(msg)
        self.PH = ProjMPO(H)
        self.pm = [ProjMPS(state) for state in states]
        self.weight = weight

    @property
    def length(self) -> int:
        """Number of sites of the projected operator."""
        return self.PH.length

    def reset(self) -> None:
        """Drop all cached environments."""
        self.PH.reset()
        for proj in self.pm:
            proj.reset()

    def position(self, psi: MPS, pos: int) -> ProjMPO_MPS:
        """Move the active bond of the operator and of every penalty.

        Returns:
            This projector.
        """
        self.PH.position(psi, pos)
        for proj in self.pm:
            proj.position(psi, pos)
        return self

    def product(self, phi: NDArray[np.complex128]) -> NDArray[np.complex128]:
        """Apply the operator plus the weighted penalties.

        Returns:
            The projected tensor.
        """
        result = self.PH.product(phi)
        for proj in self.pm:
            result = result + self.weight * proj.product(phi)
        return result

    __call__ = product

    def noiseterm(self, phi: NDArray[np.complex128], ortho: str) -> NDArray[np.complex128]:
        """Perturbation of the operator part only.

        Returns:
            The density-matrix perturbation.
        """
        return self.PH.noiseterm(phi, ortho)
