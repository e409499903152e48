# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tensor Network Data Structures.

This module implements the Matrix Product State (MPS) used as DMRG trial state and the Matrix Product Operator
(MPO) produced by the OpSum compiler. It provides canonicalization, overlaps, expectation values and dense
conversions used to verify small systems.
"""

from __future__ import annotations

import copy
import math
from typing import TYPE_CHECKING, Any

import numpy as np
import opt_einsum as oe
from numpy.typing import NDArray

from ..methods.decompositions import left_qr, right_qr

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..data_structures.opsum import OpSum
    from ..libraries.site_library import QN, SiteType


class MPS:
    """Matrix Product State (MPS) class for representing quantum states.

    The index order is (sigma, chi_l-1, chi_l).

    Attributes:
    length (int): The number of sites in the MPS.
    tensors (list[NDArray[np.complex128]]): List of rank-3 tensors representing the MPS.
    physical_dimensions (list[int]): List of physical dimensions for each site.

    Methods:
    random(...) -> MPS:
        Random state with a given bond dimension.
    get_max_bond() -> int:
        Returns the maximum bond dimension in the MPS.
    shift_orthogonality_center_right(current_orthogonality_center: int) -> None:
        Shifts the orthogonality center one site to the right.
    shift_orthogonality_center_left(current_orthogonality_center: int) -> None:
        Shifts the orthogonality center one site to the left.
    set_canonical_form(orthogonality_center: int) -> None:
        Left and right normalizes the MPS around a selected site.
    normalize(form: str = "B") -> None:
        Normalizes the MPS in the specified form.
    expect(mpo: MPO) -> np.float64:
        Expectation value of an MPO.
    to_vec() -> NDArray[np.complex128]:
        Dense state vector.
    """

    def __init__(
        self,
        length: int,
        tensors: list[NDArray[np.complex128]] | None = None,
        physical_dimensions: list[int] | int | None = None,
        state: str = "zeros",
        basis_string: str | None = None,
    ) -> None:
        """Initializes a Matrix Product State (MPS).

        Args:
            length: Number of sites in the MPS.
            tensors: Predefined tensors representing the MPS. Must match `length` if provided.
                If None, tensors are initialized according to `state`.
            physical_dimensions: Physical dimension for each site. Defaults to dimension 2 if None.
            state: Initial product state. Valid options include:
                - "zeros": Every site in its first basis state.
                - "ones": Every site in its second basis state.
                - "x+": Every site in (|0> + |1>)/sqrt(2).
                - "Neel": Alternating pattern |1010...>.
                - "wall": Domain wall |000111>.
                - "basis": Basis state given by `basis_string`.
                Default is "zeros".
            basis_string: String like "0101" selecting the basis state of every site, e.g. "0312" for
                four-dimensional sites.

        Raises:
            ValueError: If the provided `state` parameter does not match any valid initialization string.
        """
        self.length = length
        if physical_dimensions is None:
            self.physical_dimensions = [2] * length
        elif isinstance(physical_dimensions, int):
            self.physical_dimensions = [physical_dimensions] * length
        else:
            self.physical_dimensions = list(physical_dimensions)
        assert len(self.physical_dimensions) == length

        if tensors is not None:
            assert len(tensors) == length
            self.tensors = [np.asarray(t, dtype=np.complex128) for t in tensors]
            return

        if state == "basis":
            assert basis_string is not None, "basis_string must be provided for 'basis' state initialization."
            self.tensors = []
            self.init_mps_from_basis(basis_string, self.physical_dimensions)
            return

        self.tensors = []
        for i, d in enumerate(self.physical_dimensions):
            vector = np.zeros(d, dtype=complex)
            if state == "zeros":
                vector[0] = 1
            elif state == "ones":
                vector[1] = 1
            elif state == "x+":
                vector[0] = 1 / np.sqrt(2)
                vector[1] = 1 / np.sqrt(2)
            elif state == "Neel":
                vector[0 if i % 2 else 1] = 1
            elif state == "wall":
                vector[0 if i < length // 2 else 1] = 1
            else:
                msg = "Invalid state string"
                raise ValueError(msg)
            self.tensors.append(vector.reshape(d, 1, 1))

    @classmethod
    def random(
        cls,
        length: int,
        physical_dimensions: list[int] | int | None = None,
        bond_dim: int = 1,
        *,
        rng: np.random.Generator | None = None,
        real: bool = False,
    ) -> MPS:
        """Random normalized MPS.

        Internal bond dimensions are capped by the dimension of the smaller half of the chain.

        Args:
            length: Number of sites.
            physical_dimensions: Physical dimension per site (default 2).
            bond_dim: Target bond dimension.
            rng: Random number generator.
            real: Draw real instead of complex entries.

        Returns:
            A right-normalized random MPS.
        """
        if rng is None:
            rng = np.random.default_rng()
        mps = cls(length, physical_dimensions=physical_dimensions)
        dims = mps.physical_dimensions
        bonds = [1]
        for b in range(1, length):
            bonds.append(min(bond_dim, math.prod(dims[:b]), math.prod(dims[b:])))
        bonds.append(1)
        tensors = []
        for i, d in enumerate(dims):
            shape = (d, bonds[i], bonds[i + 1])
            tensor = rng.standard_normal(shape)
            if not real:
                tensor = tensor + 1j * rng.standard_normal(shape)
            tensors.append(tensor)
        mps.tensors = [np.asarray(t, dtype=np.complex128) for t in tensors]
        mps.normalize()
        return mps

    def init_mps_from_basis(self, basis_string: str, physical_dimensions: list[int]) -> None:
        """Initialize a list of MPS tensors representing a product state from a basis string.

        Args:
            basis_string: A string like "0101" indicating the computational basis state.
            physical_dimensions: The physical dimension of each site.

        Raises:
            ValueError: If a basis index exceeds the dimension of its site.
        """
        assert len(basis_string) == len(physical_dimensions)
        for site, char in enumerate(basis_string):
            idx = int(char)
            if idx >= physical_dimensions[site]:
                msg = f"Basis index {idx} invalid for site {site} of dimension {physical_dimensions[site]}."
                raise ValueError(msg)
            tensor = np.zeros((physical_dimensions[site], 1, 1), dtype=complex)
            tensor[idx, 0, 0] = 1.0
            self.tensors.append(tensor)

    def copy(self) -> MPS:
        """Deep copy.

        Returns:
            An independent copy of the state.
        """
        return copy.deepcopy(self)

    def get_max_bond(self) -> int:
        """Largest virtual bond dimension.

        Returns:
            int: The maximum bond dimension found among all tensors in the network.
        """
        return max(max(tensor.shape[1], tensor.shape[2]) for tensor in self.tensors)

    def get_link_dims(self) -> list[int]:
        """Internal bond dimensions from left to right.

        Returns:
            The dimension of every bond between neighboring sites.
        """
        return [tensor.shape[2] for tensor in self.tensors[:-1]]

    def shift_orthogonality_center_right(self, current_orthogonality_center: int) -> None:
        """Shifts orthogonality center right.

        This function performs a QR decomposition to shift the known current center to the right.

        Args:
            current_orthogonality_center (int): current center
        """
        site_tensor, bond_tensor = right_qr(self.tensors[current_orthogonality_center])
        self.tensors[current_orthogonality_center] = site_tensor
        # At the last site the R factor is the norm and is discarded
        if current_orthogonality_center + 1 < self.length:
            self.tensors[current_orthogonality_center + 1] = oe.contract(
                "ij, ajc->aic",
                bond_tensor,
                self.tensors[current_orthogonality_center + 1],
            )

    def shift_orthogonality_center_left(self, current_orthogonality_center: int) -> None:
        """Shifts orthogonality center left.

        Args:
            current_orthogonality_center (int): current center
        """
        site_tensor, bond_tensor = left_qr(self.tensors[current_orthogonality_center])
        self.tensors[current_orthogonality_center] = site_tensor
        if current_orthogonality_center > 0:
            self.tensors[current_orthogonality_center - 1] = oe.contract(
                "aij, jk->aik",
                self.tensors[current_orthogonality_center - 1],
                bond_tensor,
            )

    def set_canonical_form(self, orthogonality_center: int) -> None:
        """Sets canonical form of MPS.

        Left normalizes all tensors left of the center and right normalizes all tensors right of it.

        Args:
            orthogonality_center (int): site of matrix MPS around which we normalize
        """
        for site in range(orthogonality_center):
            self.shift_orthogonality_center_right(site)
        for site in reversed(range(orthogonality_center + 1, self.length)):
            self.shift_orthogonality_center_left(site)

    def normalize(self, form: str = "B") -> None:
        """Normalize MPS.

        Brings the network into left ("A") or right ("B") canonical form with unit norm.

        Args:
            form (str): "A" for left canonical, "B" for right canonical. Default is "B".

        Raises:
            ValueError: For an unknown form.
        """
        if form == "B":
            self.set_canonical_form(0)
            self.shift_orthogonality_center_left(0)
        elif form == "A":
            self.set_canonical_form(self.length - 1)
            self.shift_orthogonality_center_right(self.length - 1)
        else:
            msg = f"Unknown canonical form {form!r}; expected 'A' or 'B'."
            raise ValueError(msg)

    def scalar_product(self, other: MPS) -> np.complex128:
        """Compute the scalar (inner) product <self|other>.

        Args:
            other (MPS): The second Matrix Product State.

        Returns:
            np.complex128: The resulting scalar product as a complex number.
        """
        result = np.ones((1, 1), dtype=np.complex128)
        for a, b in zip(self.tensors, other.tensors, strict=True):
            result = oe.contract("ij,sik,sjl->kl", result, np.conj(a), b)
        return np.complex128(result[0, 0])

    def norm(self) -> np.float64:
        """Norm of the state.

        Returns:
            np.float64: sqrt(<psi|psi>).
        """
        return np.float64(np.sqrt(abs(self.scalar_product(self))))

    def site_expect(self, operator: NDArray[np.number[Any]], site: int) -> np.complex128:
        """Expectation value of a single-site operator.

        Args:
            operator: Local operator matrix.
            site: Site the operator acts on.

        Returns:
            np.complex128: <psi|O_site|psi> / <psi|psi>.
        """
        result = np.ones((1, 1), dtype=np.complex128)
        for i, tensor in enumerate(self.tensors):
            ket = oe.contract("st,tjl->sjl", operator, tensor) if i == site else tensor
            result = oe.contract("ij,sik,sjl->kl", result, np.conj(tensor), ket)
        return np.complex128(result[0, 0] / self.scalar_product(self))

    def expect(self, mpo: MPO) -> np.float64:
        """Expectation value of an MPO.

        Args:
            mpo: Operator with the same length and physical dimensions.

        Returns:
            np.float64: Real part of <psi|H|psi> / <psi|psi>.

        Raises:
            ValueError: If the lengths do not match.
        """
        if mpo.length != self.length:
            msg = "The lengths of the state and the operator must match."
            raise ValueError(msg)
        env = np.ones((1, 1, 1), dtype=np.complex128)
        for tensor, op in zip(self.tensors, mpo.tensors, strict=True):
            env = oe.contract("awA,sab,tswr,tAB->brB", env, tensor, op, np.conj(tensor))
        return np.float64((env[0, 0, 0] / self.scalar_product(self)).real)

    def check_if_valid_mps(self) -> None:
        """MPS validity check.

        Verifies that neighboring bond dimensions agree and that the edge bonds are trivial.
        """
        assert self.tensors[0].shape[1] == 1
        assert self.tensors[-1].shape[2] == 1
        right_bond = self.tensors[0].shape[2]
        for tensor in self.tensors[1::]:
            assert tensor.shape[1] == right_bond
            right_bond = tensor.shape[2]

    def check_canonical_form(self) -> list[int]:
        """Checks canonical form of MPS.

        Returns:
            list[int]: Every site that can act as orthogonality center, i.e. all tensors to its left are
            left-orthonormal and all tensors to its right are right-orthonormal.
        """
        left_ok = []
        right_ok = []
        for tensor in self.tensors:
            mat = oe.contract("ijk, ijl->kl", np.conj(tensor), tensor)
            left_ok.append(np.allclose(mat, np.eye(mat.shape[0])))
            mat = oe.contract("ijk, ilk->jl", tensor, np.conj(tensor))
            right_ok.append(np.allclose(mat, np.eye(mat.shape[0])))
        return [i for i in range(self.length) if all(left_ok[:i]) and all(right_ok[i + 1 :])]

    def to_vec(self) -> NDArray[np.complex128]:
        r"""Converts the MPS to a full state vector representation.

        Site 0 is the most significant factor, matching ``MPO.to_matrix``.

        Returns:
                A one-dimensional NumPy array of length \(\prod_{\ell=1}^L d_\ell\).
        """
        vec = self.tensors[0][:, 0, :]
        for tensor in self.tensors[1:]:
            vec = np.tensordot(vec, tensor, axes=([-1], [1]))
            vec = np.reshape(vec, (-1, vec.shape[-1]))
        return np.squeeze(vec, axis=-1)


class MPO:
    """Matrix Product Operator (MPO).

    Each site tensor has index order::

        (phys_out, phys_in, chi_left, chi_right)

    Construction
    -----------
    - ``MPO.from_opsum(os, sites)``: compile a symbolic operator sum.
    - ``custom(...)``: in-place builder from raw tensors.

    Conversion / checks
    -------------------
    - ``to_matrix()``: dense matrix.
    - ``check_if_valid_mpo()``: structural bond-dimension consistency check.

    Attributes:
        sites: Site basis the operator was compiled on, if any.
        link_qns: Charge of every link index of every bond for QN-conserving MPOs, else None.
    """

    tensors: list[NDArray[np.complex128]]
    length: int
    physical_dimension: int

    def __init__(self) -> None:
        """Initializes an empty MPO; use the builders to fill it."""
        self.tensors = []
        self.length = 0
        self.physical_dimension = 0
        self.sites: list[SiteType] | None = None
        self.link_qns: list[list[QN]] | None = None

    @classmethod
    def from_opsum(cls, opsum: OpSum, sites: Sequence[SiteType], **kwargs: Any) -> MPO:  # noqa: ANN401
        """Compile an operator sum, see ``opsum_to_mpo``.

        Returns:
            The compiled MPO.
        """
        from ..methods.opsum_to_mpo import opsum_to_mpo  # noqa: PLC0415

        return opsum_to_mpo(opsum, sites, **kwargs)

    def custom(self, tensors: list[NDArray[np.complex128]], *, transpose: bool = True) -> None:
        """Custom MPO from tensors.

        Args:
            tensors: A list of tensors to initialize the MPO.
            transpose: If True, tensors are given as (left, right, sigma, sigma') and are transposed to the
                MPO order (sigma, sigma', left, right). Default is True.
        """
        if transpose:
            tensors = [np.transpose(tensor, (2, 3, 0, 1)) for tensor in tensors]
        self.tensors = [np.asarray(tensor, dtype=np.complex128) for tensor in tensors]
        assert self.check_if_valid_mpo(), "MPO initialized wrong"
        self.length = len(self.tensors)
        self.physical_dimension = self.tensors[0].shape[0]

    @property
    def link_dims(self) -> list[int]:
        """Internal bond dimensions from left to right."""
        return [tensor.shape[3] for tensor in self.tensors[:-1]]

    def max_link_dim(self) -> int:
        """Largest internal bond dimension.

        Returns:
            int: The maximal link dimension, 1 for a single site.
        """
        return max(self.link_dims, default=1)

    def to_matrix(self) -> NDArray[np.complex128]:
        """MPO to matrix conversion.

        Site 0 is the most significant tensor factor.

        Returns:
            The dense matrix of the operator.
        """
        mat = self.tensors[0]
        for tensor in self.tensors[1:]:
            mat = oe.contract("abcd, efdg->aebfcg", mat, tensor)
            mat = np.reshape(
                mat,
                (
                    mat.shape[0] * mat.shape[1],
                    mat.shape[2] * mat.shape[3],
                    mat.shape[4],
                    mat.shape[5],
                ),
            )

        # Final left and right bonds should be 1
        return np.squeeze(mat, axis=(2, 3))

    def check_if_valid_mpo(self) -> bool:
        """MPO validity check.

        Returns:
            bool: True if the right bond of each tensor matches the left bond of its neighbor.
        """
        right_bond = self.tensors[0].shape[3]
        for tensor in self.tensors[1::]:
            assert tensor.shape[2] == right_bond
            right_bond = tensor.shape[3]
        return True

    def check_qn_blocks(self, atol: float = 1e-12) -> bool:
        """Check the block-sparse structure of a QN-conserving MPO.

        Every non-zero entry ``W[o, i, l, r]`` must satisfy ``q_link[r] = q_link[l] + q_state[o] - q_state[i]``.

        Args:
            atol: Entries below this magnitude count as zero.

        Returns:
            bool: True if all tensors respect charge conservation.

        Raises:
            ValueError: If the MPO carries no quantum numbers.
        """
        if self.link_qns is None or self.sites is None:
            msg = "The MPO carries no quantum numbers."
            raise ValueError(msg)
        zero = self.sites[0].qn_zero
        for n, tensor in enumerate(self.tensors):
            state_qns = self.sites[n].state_qns
            assert state_qns is not None
            left_qns = [zero] if n == 0 else self.link_qns[n - 1]
            right_qns = [zero] if n == self.length - 1 else self.link_qns[n]
            for o, i, l, r in zip(*np.nonzero(np.abs(tensor) > atol), strict=True):
                flux = tuple(a - b for a, b in zip(state_qns[o], state_qns[i], strict=True))
                expected = tuple(x + y for x, y in zip(left_qns[l], flux, strict=True))
                if expected != right_qns[r]:
                    return False
        return True
