# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""DMRG Parameters.

This module defines the sweep schedule (``Sweeps``) and the engine configuration (``DMRGParams``).

A schedule is built from scalars or per-sweep lists. Lists shorter than the number of sweeps repeat their last
value, so ``Sweeps(5, maxdim=[10, 20, 100])`` uses bond dimension 100 from the third sweep on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .observers import NoObserver

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping, Sequence

    from .observers import Observer

DEPRECATED_KEYS = {
    "maxiter": "maxiter is no longer supported, use eigsolve_maxiter instead.",
    "errgoal": "errgoal is no longer supported, use eigsolve_tol instead.",
}

# long-form spellings accepted by ``DMRGParams.from_kwargs``
KEY_ALIASES = {
    "decomposition_mode": "which_decomp",
    "eigensolve_tol": "eigsolve_tol",
    "eigensolve_krylov_dim": "eigsolve_krylovdim",
    "eigensolve_max_iter": "eigsolve_maxiter",
    "eigensolve_verbosity": "eigsolve_verbosity",
}

VALID_DECOMPS = ("automatic", "svd", "eigen")


@dataclass(frozen=True)
class SweepParams:
    """Truncation and noise settings of one sweep."""

    maxdim: int
    mindim: int
    cutoff: float
    noise: float


def _expand(values: Any, nsweeps: int, name: str, cast: Callable[[Any], Any]) -> list[Any]:  # noqa: ANN401
    if isinstance(values, (list, tuple)):
        if not values:
            msg = f"The {name} schedule must not be empty."
            raise ValueError(msg)
        values = [cast(v) for v in values[:nsweeps]]
        return values + [values[-1]] * (nsweeps - len(values))
    return [cast(values)] * nsweeps


class Sweeps:
    """Schedule of truncation parameters for every sweep.

    Attributes:
        nsweep: Number of sweeps.
    """

    def __init__(
        self,
        nsweeps: int,
        maxdim: int | Sequence[int] = 1,
        mindim: int | Sequence[int] = 1,
        cutoff: float | Sequence[float] = 1e-8,
        noise: float | Sequence[float] = 0.0,
    ) -> None:
        """Initializes the schedule.

        Args:
            nsweeps: Number of sweeps, at least 1.
            maxdim: Maximal bond dimension per sweep.
            mindim: Minimal bond dimension per sweep.
            cutoff: Relative truncation cutoff per sweep.
            noise: Noise (density-matrix perturbation) strength per sweep.

        Raises:
            ValueError: For a non-positive sweep count or an invalid entry.
        """
        if nsweeps < 1:
            msg = f"The number of sweeps must be positive, got {nsweeps}."
            raise ValueError(msg)
        self.nsweep = int(nsweeps)
        maxdims = _expand(maxdim, self.nsweep, "maxdim", int)
        mindims = _expand(mindim, self.nsweep, "mindim", int)
        cutoffs = _expand(cutoff, self.nsweep, "cutoff", float)
        noises = _expand(noise, self.nsweep, "noise", float)
        if min(maxdims) < 1 or min(mindims) < 1:
            msg = "maxdim and mindim must be at least 1."
            raise ValueError(msg)
        if min(cutoffs) < 0 or min(noises) < 0:
            msg = "cutoff and noise must be non-negative."
            raise ValueError(msg)
        self._records = tuple(
            SweepParams(maxdim=a, mindim=b, cutoff=c, noise=n)
            for a, b, c, n in zip(maxdims, mindims, cutoffs, noises, strict=True)
        )

    @classmethod
    def from_table(cls, header: Sequence[str], *rows: Sequence[Any]) -> Sweeps:
        """Build a schedule from a table with one row per sweep.

        Example:
            >>> Sweeps.from_table(["maxdim", "cutoff", "noise"], [10, 1e-8, 1e-5], [20, 1e-10, 0.0])

        Args:
            header: Column names; each must be one of maxdim, mindim, cutoff, noise.
            rows: Values of every sweep.

        Returns:
            The schedule with ``len(rows)`` sweeps.

        Raises:
            ValueError: For unknown columns or rows of the wrong length.
        """
        allowed = {"maxdim", "mindim", "cutoff", "noise"}
        unknown = set(header) - allowed
        if unknown:
            msg = f"Unknown sweep table columns: {sorted(unknown)}."
            raise ValueError(msg)
        if not rows:
            msg = "A sweep table needs at least one row."
            raise ValueError(msg)
        columns: dict[str, list[Any]] = {name: [] for name in header}
        for row in rows:
            if len(row) != len(header):
                msg = f"Sweep table row {row!r} does not match header {list(header)!r}."
                raise ValueError(msg)
            for name, value in zip(header, row, strict=True):
                columns[name].append(value)
        return cls(len(rows), **columns)

    def __getitem__(self, sw: int) -> SweepParams:
        """Settings of sweep ``sw`` (0-based).

        Returns:
            The record of that sweep.
        """
        return self._records[sw]

    def maxdim(self, sw: int) -> int:
        """Maximal bond dimension of sweep ``sw``.

        Returns:
            The bond dimension.
        """
        return self._records[sw].maxdim

    def mindim(self, sw: int) -> int:
        """Minimal bond dimension of sweep ``sw``.

        Returns:
            The bond dimension.
        """
        return self._records[sw].mindim

    def cutoff(self, sw: int) -> float:
        """Truncation cutoff of sweep ``sw``.

        Returns:
            The cutoff.
        """
        return self._records[sw].cutoff

    def noise(self, sw: int) -> float:
        """Noise strength of sweep ``sw``.

        Returns:
            The noise.
        """
        return self._records[sw].noise

    def __len__(self) -> int:
        """Number of sweeps.

        Returns:
            The sweep count.
        """
        return self.nsweep

    def __iter__(self) -> Iterator[SweepParams]:
        """Iterate over the sweep records.

        Returns:
            An iterator over all sweeps.
        """
        return iter(self._records)

    def __repr__(self) -> str:
        """Table form of the schedule.

        Returns:
            One line per sweep.
        """
        lines = [f"Sweeps({self.nsweep})"]
        lines.extend(
            f"  {sw}: maxdim={r.maxdim} mindim={r.mindim} cutoff={r.cutoff:.1e} noise={r.noise:.1e}"
            for sw, r in enumerate(self._records)
        )
        return "\n".join(lines)


class DMRGParams:
    """Configuration of the DMRG engine.

    Attributes:
        which_decomp: Factorization of optimized two-site tensors ("automatic", "svd" or "eigen").
        observer: Receives every bond update and decides about early termination.
        quiet: Suppress per-sweep logging and the progress bar.
        eigsolve_tol: Convergence tolerance of the Krylov eigensolver.
        eigsolve_krylovdim: Krylov subspace dimension.
        eigsolve_maxiter: Number of Krylov restarts.
        eigsolve_verbosity: Verbosity of the eigensolver.
        weight: Penalty weight of the orthogonality projectors in excited-state DMRG.
        tracer: Optional callable returning a context manager for each named phase.
    """

    def __init__(
        self,
        *,
        which_decomp: str = "automatic",
        observer: Observer | None = None,
        quiet: bool = False,
        eigsolve_tol: float = 1e-14,
        eigsolve_krylovdim: int = 3,
        eigsolve_maxiter: int = 1,
        eigsolve_verbosity: int = 0,
        weight: float = 1.0,
        tracer: Callable[[str], Any] | None = None,
    ) -> None:
        """Initializes the configuration.

        Raises:
            ValueError: For invalid values.
        """
        if which_decomp not in VALID_DECOMPS:
            msg = f"which_decomp must be one of {VALID_DECOMPS}, got {which_decomp!r}."
            raise ValueError(msg)
        if eigsolve_krylovdim < 1 or eigsolve_maxiter < 1:
            msg = "eigsolve_krylovdim and eigsolve_maxiter must be at least 1."
            raise ValueError(msg)
        if eigsolve_tol < 0:
            msg = "eigsolve_tol must be non-negative."
            raise ValueError(msg)
        if weight <= 0:
            msg = f"The penalty weight must be positive, got {weight}."
            raise ValueError(msg)
        self.which_decomp = which_decomp
        self.observer = NoObserver() if observer is None else observer
        self.quiet = quiet
        self.eigsolve_tol = eigsolve_tol
        self.eigsolve_krylovdim = eigsolve_krylovdim
        self.eigsolve_maxiter = eigsolve_maxiter
        self.eigsolve_verbosity = eigsolve_verbosity
        self.weight = weight
        self.tracer = tracer

    @classmethod
    def from_kwargs(cls, **kwargs: Any) -> DMRGParams:  # noqa: ANN401
        """Build the configuration from keyword arguments.

        The long-form names of ``KEY_ALIASES`` (e.g. ``eigensolve_krylov_dim``) are accepted as well.

        Returns:
            The configuration.

        Raises:
            ValueError: If a removed key (``maxiter``, ``errgoal``) is passed.
            TypeError: For unknown keys, or if a key is given under both of its names.
        """
        check_deprecated(kwargs)
        resolved: dict[str, Any] = {}
        for key, value in kwargs.items():
            name = KEY_ALIASES.get(key, key)
            if name in resolved:
                msg = f"{name} was given more than once (as {key!r} and under its other name)."
                raise TypeError(msg)
            resolved[name] = value
        return cls(**resolved)


def check_deprecated(kwargs: Mapping[str, Any]) -> None:
    """Reject removed configuration keys.

    Raises:
        ValueError: With the name of the replacement key.
    """
    for key, msg in DEPRECATED_KEYS.items():
        if key in kwargs:
            raise ValueError(msg)
