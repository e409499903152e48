# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Observers and tracers.

Observers are called by the DMRG engine after every bond update and asked once per sweep whether the optimization
should stop. The engine itself has no convergence criterion; ``DMRGObserver`` provides the usual energy-based one.

Tracers wrap the named phases of the engine and of the MPO compiler (``"position"``, ``"eigsolve"``, ...) in a
context manager. ``TimingTracer`` accumulates the wall time of every phase.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from ..methods.decompositions import Spectrum
    from .networks import MPS

logger = logging.getLogger(__name__)


class Observer(Protocol):
    """Interface of DMRG observers."""

    def measure(
        self,
        *,
        energy: float,
        psi: MPS,
        bond: int,
        sweep: int,
        half_sweep: int,
        spec: Spectrum,
        quiet: bool,
    ) -> None:
        """Record the state after the update of one bond."""

    def checkdone(self, *, quiet: bool) -> bool:
        """Return True to stop the sweep loop."""


class NoObserver:
    """Observer that records nothing and never stops the optimization."""

    def measure(self, **kwargs: Any) -> None:  # noqa: ANN401
        """Ignore the measurement."""

    def checkdone(self, **kwargs: Any) -> bool:  # noqa: ANN401, ARG002
        """Never request termination.

        Returns:
            False.
        """
        return False


class DMRGObserver:
    """Energy-convergence observer.

    Stores the energy reached at the end of every sweep together with the truncation error of the last bond update
    and the maximal bond dimension, and requests termination once two consecutive sweep energies differ by less
    than ``energy_tol``. Optionally, site-local operators are measured after every sweep.

    Attributes:
        energies: Energy at the end of each sweep.
        truncerrs: Largest truncation error of each sweep.
        max_bonds: Maximal bond dimension after each sweep.
        measurements: For every operator name, one list of site expectation values per sweep.
    """

    def __init__(
        self,
        energy_tol: float = 0.0,
        *,
        minsweeps: int = 2,
        ops: list[str] | None = None,
        sites: list[Any] | None = None,
    ) -> None:
        """Initializes the observer.

        Args:
            energy_tol: Stop once the energy change between two sweeps falls below this value. 0 disables stopping.
            minsweeps: Minimal number of sweeps before the energy criterion is checked.
            ops: Names of site-local operators measured after every sweep.
            sites: Site types used to resolve ``ops``. Required if ``ops`` is given.

        Raises:
            ValueError: If ops are requested without a site basis.
        """
        if ops and sites is None:
            msg = "A site basis is required to measure local operators."
            raise ValueError(msg)
        self.energy_tol = energy_tol
        self.minsweeps = minsweeps
        self.ops = list(ops or [])
        self.sites = sites
        self.energies: list[float] = []
        self.truncerrs: list[float] = []
        self.max_bonds: list[int] = []
        self.measurements: dict[str, list[list[float]]] = {name: [] for name in self.ops}
        self._last_energy = 0.0
        self._sweep_truncerr = 0.0

    def measure(
        self,
        *,
        energy: float,
        psi: MPS,
        bond: int,
        sweep: int,
        half_sweep: int,
        spec: Spectrum,
        quiet: bool,  # noqa: ARG002
    ) -> None:
        """Record the energy and truncation error of one bond update."""
        self._last_energy = energy
        self._sweep_truncerr = max(self._sweep_truncerr, spec.truncerr)
        # the last update of a sweep is the backward half-sweep on the first bond
        if half_sweep == 2 and bond == 0:
            self.energies.append(energy)
            self.truncerrs.append(self._sweep_truncerr)
            self.max_bonds.append(psi.get_max_bond())
            self._sweep_truncerr = 0.0
            for name in self.ops:
                values = [psi.site_expect(self.sites[j].op(name), j).real for j in range(psi.length)]
                self.measurements[name].append(values)
            logger.debug("Sweep %d recorded energy %.12f", sweep, energy)

    def checkdone(self, *, quiet: bool) -> bool:
        """Stop when the energy changed by less than ``energy_tol`` since the previous sweep.

        Returns:
            True if the optimization is converged.
        """
        if self.energy_tol <= 0.0 or len(self.energies) < max(self.minsweeps, 2):
            return False
        delta = abs(self.energies[-1] - self.energies[-2])
        if delta < self.energy_tol:
            if not quiet:
                logger.info("Energy difference %.3e less than tolerance %.3e, stopping DMRG", delta, self.energy_tol)
            return True
        return False

    @property
    def energy(self) -> float:
        """Most recent energy."""
        return self._last_energy


def trace_phase(tracer: Callable[[str], contextlib.AbstractContextManager[Any]] | None, phase: str) -> Any:  # noqa: ANN401
    """Open the tracing context of a named phase.

    Args:
        tracer: Tracer callable or None.
        phase: Name of the phase.

    Returns:
        The tracer's context manager, or a no-op context.
    """
    if tracer is None:
        return contextlib.nullcontext()
    return tracer(phase)


class TimingTracer:
    """Tracer accumulating the wall time and call count of every phase."""

    def __init__(self) -> None:
        """Initializes empty timers."""
        self.totals: dict[str, float] = defaultdict(float)
        self.calls: dict[str, int] = defaultdict(int)

    @contextlib.contextmanager
    def __call__(self, phase: str) -> Iterator[None]:
        """Time one execution of a phase.

        Yields:
            Control to the traced block.
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            self.totals[phase] += time.perf_counter() - start
            self.calls[phase] += 1

    def summary(self) -> str:
        """Table of the accumulated timings, slowest phase first.

        Returns:
            One line per phase.
        """
        lines = [
            f"{phase:<16s} {self.totals[phase]:10.4f} s  {self.calls[phase]:8d} calls"
            for phase in sorted(self.totals, key=self.totals.__getitem__, reverse=True)
        ]
        return "\n".join(lines)

    def mean(self, phase: str) -> float:
        """Average duration of a phase.

        Returns:
            Mean wall time in seconds, NaN if the phase never ran.
        """
        if not self.calls[phase]:
            return float(np.nan)
        return self.totals[phase] / self.calls[phase]
