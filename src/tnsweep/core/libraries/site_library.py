# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Site Library.

This module defines the local Hilbert spaces ("site types") on which operator sums and tensor networks are built.
Each site type knows its physical dimension, the matrices of its named local operators, which of those operators
carry a fermionic Jordan-Wigner string, and, optionally, the conserved quantum numbers of its basis states.

Operator names may be compound, e.g. ``"Cdag * F"``, which is resolved as the matrix product of the parts in the
written order. A numeric array passed instead of a name is returned unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

QN = tuple[int, ...]


def qn_add(a: QN, b: QN) -> QN:
    """Elementwise sum of two quantum numbers.

    Returns:
        The combined charge.
    """
    return tuple(x + y for x, y in zip(a, b, strict=True))


def qn_neg(a: QN) -> QN:
    """Negated quantum number.

    Returns:
        The charge with every component sign-flipped.
    """
    return tuple(-x for x in a)


class QNError(ValueError):
    """Raised when an operator has no definite quantum-number flux."""


class SiteType:
    """Base class of all site types.

    Subclasses fill ``_build_ops`` with the fixed operator matrices and may provide parametrized operators through
    ``_param_ops``. Quantum numbers are only attached when ``conserve_qns`` is True.

    Attributes:
        name: Human readable tag of the site type.
        fermionic: Names of the operators that carry a Jordan-Wigner string.
        qn_names: Names of the conserved charges, in the order of the ``state_qns`` tuples.
    """

    name: ClassVar[str] = "Site"
    fermionic: ClassVar[frozenset[str]] = frozenset()
    qn_names: ClassVar[tuple[str, ...]] = ()

    def __init__(self, *, conserve_qns: bool = False) -> None:
        """Initializes the site type.

        Args:
            conserve_qns: If True, the basis states carry quantum numbers and operators are checked for definite flux.
        """
        self.conserve_qns = conserve_qns
        self._ops = self._build_ops()
        self._ops.setdefault("Id", np.eye(self.dim))
        self._ops.setdefault("F", np.eye(self.dim))

    @property
    def dim(self) -> int:
        """Physical dimension of the site."""
        raise NotImplementedError

    def _build_ops(self) -> dict[str, NDArray[np.complex128] | NDArray[np.float64]]:
        raise NotImplementedError

    def _param_ops(self) -> dict[str, Callable[..., NDArray[np.complex128]]]:
        return {}

    def _qn_table(self) -> list[QN]:
        raise NotImplementedError

    @property
    def has_qns(self) -> bool:
        """True if the basis states carry conserved quantum numbers."""
        return self.conserve_qns

    @property
    def state_qns(self) -> list[QN] | None:
        """Quantum numbers of the basis states, or None if charges are not conserved."""
        if not self.conserve_qns:
            return None
        return self._qn_table()

    @property
    def qn_zero(self) -> QN:
        """The neutral charge of this site type."""
        return (0,) * len(self.qn_names)

    @property
    def op_names(self) -> list[str]:
        """Sorted names of all named operators (fixed and parametrized)."""
        return sorted(set(self._ops) | set(self._param_ops()))

    def op(self, name: str | NDArray[np.number], **params: object) -> NDArray[np.number]:
        """Look up the matrix of a local operator.

        Args:
            name: Operator name, a compound name ``"A * B"``, or a numeric matrix.
            **params: Parameters forwarded to parametrized operators.

        Returns:
            The (dim x dim) operator matrix.

        Raises:
            KeyError: If the name is unknown for this site type.
            ValueError: If a numeric operator has the wrong shape.
        """
        if isinstance(name, np.ndarray):
            if name.shape != (self.dim, self.dim):
                msg = f"Numeric operator of shape {name.shape} does not act on a site of dimension {self.dim}."
                raise ValueError(msg)
            return name
        if "*" in name:
            factors = [part.strip() for part in name.split("*")]
            mat = self.op(factors[0], **params)
            for factor in factors[1:]:
                mat = mat @ self.op(factor, **params)
            return mat
        if name in self._ops:
            return self._ops[name]
        param_ops = self._param_ops()
        if name in param_ops:
            return param_ops[name](**params)
        msg = f"Operator {name!r} is not defined on site type {self.name!r}. Known operators: {self.op_names}."
        raise KeyError(msg)

    def has_fermion_string(self, name: str | NDArray[np.number]) -> bool:
        """Fermionic predicate.

        A compound operator carries a string if an odd number of its factors do.

        Args:
            name: Operator name.

        Returns:
            True if the operator anticommutes with fermionic operators on other sites.
        """
        if isinstance(name, np.ndarray):
            return False
        if "*" in name:
            count = sum(self.has_fermion_string(part.strip()) for part in name.split("*"))
            return count % 2 == 1
        return name in self.fermionic

    def op_flux(self, name: str | NDArray[np.number], **params: object) -> QN:
        """Charge transferred by an operator.

        The flux of an operator ``O`` is ``q[i] - q[j]`` for every non-zero ``O[i, j]``; it must be unique.

        Args:
            name: Operator name.
            **params: Operator parameters.

        Returns:
            The flux, or the neutral charge if quantum numbers are not conserved.

        Raises:
            QNError: If the matrix mixes charge sectors.
        """
        qns = self.state_qns
        if qns is None:
            return self.qn_zero
        mat = self.op(name, **params)
        flux: QN | None = None
        rows, cols = np.nonzero(np.abs(mat) > 1e-14)
        for i, j in zip(rows, cols, strict=True):
            candidate = tuple(a - b for a, b in zip(qns[i], qns[j], strict=True))
            if flux is None:
                flux = candidate
            elif candidate != flux:
                msg = f"Operator {name!r} on site type {self.name!r} has no definite quantum-number flux."
                raise QNError(msg)
        return self.qn_zero if flux is None else flux

    def __repr__(self) -> str:
        """Short representation.

        Returns:
            The site type name and whether charges are conserved.
        """
        return f"{type(self).__name__}(conserve_qns={self.conserve_qns})"


class SpinHalf(SiteType):
    """S=1/2 spin with basis order (up, down) and conserved charge 2*Sz."""

    name = "S=1/2"
    qn_names = ("Sz",)

    @property
    def dim(self) -> int:
        """Physical dimension of the site."""
        return 2

    def _build_ops(self) -> dict[str, NDArray[np.complex128] | NDArray[np.float64]]:
        return {
            "Sz": np.array([[0.5, 0.0], [0.0, -0.5]]),
            "S+": np.array([[0.0, 1.0], [0.0, 0.0]]),
            "S-": np.array([[0.0, 0.0], [1.0, 0.0]]),
            "Sx": np.array([[0.0, 0.5], [0.5, 0.0]]),
            "Sy": np.array([[0.0, -0.5j], [0.5j, 0.0]]),
            "iSy": np.array([[0.0, 0.5], [-0.5, 0.0]]),
            "ProjUp": np.array([[1.0, 0.0], [0.0, 0.0]]),
            "ProjDn": np.array([[0.0, 0.0], [0.0, 1.0]]),
        }

    def _qn_table(self) -> list[QN]:
        return [(1,), (-1,)]


class SpinOne(SiteType):
    """S=1 spin with basis order (+1, 0, -1) and conserved charge 2*Sz."""

    name = "S=1"
    qn_names = ("Sz",)

    @property
    def dim(self) -> int:
        """Physical dimension of the site."""
        return 3

    def _build_ops(self) -> dict[str, NDArray[np.complex128] | NDArray[np.float64]]:
        s2 = np.sqrt(2.0)
        splus = np.array([[0.0, s2, 0.0], [0.0, 0.0, s2], [0.0, 0.0, 0.0]])
        sz = np.diag([1.0, 0.0, -1.0])
        return {
            "Sz": sz,
            "S+": splus,
            "S-": splus.T.copy(),
            "Sx": 0.5 * (splus + splus.T),
            "Sy": -0.5j * (splus - splus.T),
            "Sz2": sz @ sz,
        }

    def _qn_table(self) -> list[QN]:
        return [(2,), (0,), (-2,)]


class Qubit(SiteType):
    """Two-level system with Pauli operators and conserved charge given by the number of ones."""

    name = "Qubit"
    qn_names = ("Number",)

    @property
    def dim(self) -> int:
        """Physical dimension of the site."""
        return 2

    def _build_ops(self) -> dict[str, NDArray[np.complex128] | NDArray[np.float64]]:
        return {
            "I": np.eye(2),
            "X": np.array([[0.0, 1.0], [1.0, 0.0]]),
            "Y": np.array([[0.0, -1.0j], [1.0j, 0.0]]),
            "Z": np.array([[1.0, 0.0], [0.0, -1.0]]),
            "Proj0": np.array([[1.0, 0.0], [0.0, 0.0]]),
            "Proj1": np.array([[0.0, 0.0], [0.0, 1.0]]),
            "Raise": np.array([[0.0, 0.0], [1.0, 0.0]]),
            "Lower": np.array([[0.0, 1.0], [0.0, 0.0]]),
        }

    def _param_ops(self) -> dict[str, Callable[..., NDArray[np.complex128]]]:
        def rx(theta: float) -> NDArray[np.complex128]:
            c, s = np.cos(theta / 2), np.sin(theta / 2)
            return np.array([[c, -1j * s], [-1j * s, c]])

        def ry(theta: float) -> NDArray[np.complex128]:
            c, s = np.cos(theta / 2), np.sin(theta / 2)
            return np.array([[c, -s], [s, c]], dtype=complex)

        def rz(theta: float) -> NDArray[np.complex128]:
            return np.array([[np.exp(-0.5j * theta), 0.0], [0.0, np.exp(0.5j * theta)]])

        return {"Rx": rx, "Ry": ry, "Rz": rz}

    def _qn_table(self) -> list[QN]:
        return [(0,), (1,)]


class Fermion(SiteType):
    """Spinless fermion with basis order (empty, occupied).

    ``C``/``Cdag`` are fermionic; ``A``/``Adag`` are the same matrices without the Jordan-Wigner string.
    The conserved charge is the particle number.
    """

    name = "Fermion"
    fermionic = frozenset({"C", "Cdag", "c", "cdag"})
    qn_names = ("Nf",)

    @property
    def dim(self) -> int:
        """Physical dimension of the site."""
        return 2

    def _build_ops(self) -> dict[str, NDArray[np.complex128] | NDArray[np.float64]]:
        lower = np.array([[0.0, 1.0], [0.0, 0.0]])
        ops = {
            "C": lower,
            "Cdag": lower.T.copy(),
            "A": lower,
            "Adag": lower.T.copy(),
            "N": np.diag([0.0, 1.0]),
            "F": np.diag([1.0, -1.0]),
        }
        ops["c"] = ops["C"]
        ops["cdag"] = ops["Cdag"]
        ops["n"] = ops["N"]
        return ops

    def _qn_table(self) -> list[QN]:
        return [(0,), (1,)]


class Electron(SiteType):
    """Spinful fermion with basis order (empty, up, down, up-down).

    Within one site the up orbital is ordered before the down orbital, so ``Cdn`` carries the sign of the up
    occupation. Conserved charges are the particle number and 2*Sz.
    """

    name = "Electron"
    fermionic = frozenset({"Cup", "Cdagup", "Cdn", "Cdagdn"})
    qn_names = ("Nf", "Sz")

    @property
    def dim(self) -> int:
        """Physical dimension of the site."""
        return 4

    def _build_ops(self) -> dict[str, NDArray[np.complex128] | NDArray[np.float64]]:
        cup = np.zeros((4, 4))
        cup[0, 1] = 1.0
        cup[2, 3] = 1.0
        cdn = np.zeros((4, 4))
        cdn[0, 2] = 1.0
        cdn[1, 3] = -1.0
        aup = np.zeros((4, 4))
        aup[0, 1] = 1.0
        aup[2, 3] = 1.0
        adn = np.zeros((4, 4))
        adn[0, 2] = 1.0
        adn[1, 3] = 1.0
        nup = np.diag([0.0, 1.0, 0.0, 1.0])
        ndn = np.diag([0.0, 0.0, 1.0, 1.0])
        splus = np.zeros((4, 4))
        splus[1, 2] = 1.0
        return {
            "Cup": cup,
            "Cdagup": cup.T.copy(),
            "Cdn": cdn,
            "Cdagdn": cdn.T.copy(),
            "Aup": aup,
            "Adagup": aup.T.copy(),
            "Adn": adn,
            "Adagdn": adn.T.copy(),
            "Nup": nup,
            "Ndn": ndn,
            "Ntot": nup + ndn,
            "NupNdn": nup @ ndn,
            "Sz": 0.5 * (nup - ndn),
            "S+": splus,
            "S-": splus.T.copy(),
            "F": np.diag([1.0, -1.0, -1.0, 1.0]),
            "Fup": np.diag([1.0, -1.0, 1.0, -1.0]),
            "Fdn": np.diag([1.0, 1.0, -1.0, -1.0]),
        }

    def _qn_table(self) -> list[QN]:
        return [(0, 0), (1, 1), (1, -1), (2, 0)]


SITE_TYPES: dict[str, type[SiteType]] = {
    "S=1/2": SpinHalf,
    "SpinHalf": SpinHalf,
    "S=1": SpinOne,
    "SpinOne": SpinOne,
    "Qubit": Qubit,
    "Fermion": Fermion,
    "Electron": Electron,
}


def siteinds(site_type: str | type[SiteType], length: int, *, conserve_qns: bool = False) -> list[SiteType]:
    """Build the site basis of a homogeneous chain.

    Args:
        site_type: Name of a registered site type (e.g. ``"S=1/2"``) or a ``SiteType`` subclass.
        length: Number of sites.
        conserve_qns: Attach quantum numbers to every site.

    Returns:
        One site type instance per chain position.

    Raises:
        ValueError: If the length is not positive or the site type is unknown.
    """
    if length <= 0:
        msg = "length must be positive."
        raise ValueError(msg)
    if isinstance(site_type, str):
        if site_type not in SITE_TYPES:
            msg = f"Unknown site type {site_type!r}; expected one of {sorted(SITE_TYPES)}."
            raise ValueError(msg)
        site_type = SITE_TYPES[site_type]
    return [site_type(conserve_qns=conserve_qns) for _ in range(length)]


def has_fermion_string(name: str | NDArray[np.number], site: SiteType) -> bool:
    """Check whether an operator on the given site carries a Jordan-Wigner string.

    Returns:
        True for fermionic operators.
    """
    return site.has_fermion_string(name)
