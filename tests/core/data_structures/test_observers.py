# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for the DMRG observers and tracers."""

from __future__ import annotations

import gc
import logging
import weakref

import numpy as np
import pytest

from tnsweep.core.data_structures.networks import MPS
from tnsweep.core.data_structures.observers import DMRGObserver, NoObserver, TimingTracer, trace_phase
from tnsweep.core.libraries.site_library import siteinds
from tnsweep.core.methods.decompositions import Spectrum


def _end_of_sweep(observer: DMRGObserver, energy: float, sweep: int, psi: MPS, truncerr: float = 0.0) -> None:
    """Feed the last bond update of a sweep."""
    observer.measure(
        energy=energy,
        psi=psi,
        bond=0,
        sweep=sweep,
        half_sweep=2,
        spec=Spectrum(np.array([1.0]), truncerr),
        quiet=True,
    )


def test_no_observer() -> None:
    """NoObserver accepts everything and never stops."""
    observer = NoObserver()
    observer.measure(energy=1.0, bond=0)
    assert not observer.checkdone(quiet=True)


def test_records_only_at_end_of_sweep() -> None:
    """Intermediate bond updates do not produce sweep records."""
    psi = MPS(3)
    observer = DMRGObserver()
    observer.measure(
        energy=-1.0, psi=psi, bond=1, sweep=1, half_sweep=1, spec=Spectrum(np.array([1.0]), 0.3), quiet=True
    )
    assert observer.energies == []
    assert observer.energy == -1.0
    _end_of_sweep(observer, -1.5, 1, psi, truncerr=0.1)
    assert observer.energies == [-1.5]
    assert observer.truncerrs == [0.3]
    assert observer.max_bonds == [1]


def test_observer_keeps_no_state_reference() -> None:
    """The observer only stores numbers, never the state it measured."""
    psi = MPS(3)
    ref = weakref.ref(psi)
    observer = DMRGObserver()
    _end_of_sweep(observer, -1.0, 1, psi)
    del psi
    gc.collect()
    assert ref() is None
    assert observer.energies == [-1.0]


def test_convergence_check() -> None:
    """Termination is requested once the energy change drops below the tolerance."""
    psi = MPS(2)
    observer = DMRGObserver(1e-6)
    _end_of_sweep(observer, -1.0, 1, psi)
    assert not observer.checkdone(quiet=True)
    _end_of_sweep(observer, -1.1, 2, psi)
    assert not observer.checkdone(quiet=True)
    _end_of_sweep(observer, -1.1 - 1e-8, 3, psi)
    assert observer.checkdone(quiet=True)


def test_zero_tolerance_never_stops() -> None:
    """The default tolerance disables the criterion."""
    psi = MPS(2)
    observer = DMRGObserver()
    for sweep in range(1, 4):
        _end_of_sweep(observer, -1.0, sweep, psi)
    assert not observer.checkdone(quiet=True)


def test_minsweeps() -> None:
    """No termination before minsweeps sweeps."""
    psi = MPS(2)
    observer = DMRGObserver(1e-3, minsweeps=3)
    _end_of_sweep(observer, -1.0, 1, psi)
    _end_of_sweep(observer, -1.0, 2, psi)
    assert not observer.checkdone(quiet=True)
    _end_of_sweep(observer, -1.0, 3, psi)
    assert observer.checkdone(quiet=True)


def test_convergence_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    """A non-quiet stop is reported."""
    psi = MPS(2)
    observer = DMRGObserver(1e-3)
    _end_of_sweep(observer, -1.0, 1, psi)
    _end_of_sweep(observer, -1.0, 2, psi)
    with caplog.at_level(logging.INFO, logger="tnsweep.core.data_structures.observers"):
        assert observer.checkdone(quiet=False)
    assert "stopping DMRG" in caplog.text


def test_local_measurements() -> None:
    """Site operators are measured on the state of every sweep."""
    sites = siteinds("S=1/2", 3)
    observer = DMRGObserver(ops=["Sz"], sites=sites)
    _end_of_sweep(observer, 0.0, 1, MPS(3, state="basis", basis_string="010"))
    assert observer.measurements["Sz"] == [[0.5, -0.5, 0.5]]


def test_measurements_need_sites() -> None:
    """Operators cannot be resolved without a site basis."""
    with pytest.raises(ValueError, match="site basis"):
        DMRGObserver(ops=["Sz"])


def test_timing_tracer() -> None:
    """The tracer counts calls and accumulates time per phase."""
    tracer = TimingTracer()
    for _ in range(3):
        with tracer("eigsolve"):
            pass
    with trace_phase(tracer, "position"):
        pass
    assert tracer.calls["eigsolve"] == 3
    assert tracer.calls["position"] == 1
    assert tracer.totals["eigsolve"] >= 0.0
    assert tracer.mean("eigsolve") == pytest.approx(tracer.totals["eigsolve"] / 3)
    assert np.isnan(tracer.mean("merge"))
    summary = tracer.summary()
    assert "eigsolve" in summary
    assert "position" in summary


def test_tracer_records_failing_phase() -> None:
    """A phase that raises is still timed."""
    tracer = TimingTracer()
    with pytest.raises(RuntimeError), tracer("replace_bond"):
        raise RuntimeError
    assert tracer.calls["replace_bond"] == 1


def test_trace_phase_without_tracer() -> None:
    """Without a tracer the phase is a no-op context."""
    with trace_phase(None, "position"):
        pass
