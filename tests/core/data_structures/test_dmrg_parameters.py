# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for the DMRG sweep schedule and engine configuration."""

from __future__ import annotations

import pytest

from tnsweep.core.data_structures.dmrg_parameters import DMRGParams, SweepParams, Sweeps
from tnsweep.core.data_structures.observers import DMRGObserver, NoObserver


def test_scalar_schedule() -> None:
    """Scalars apply to every sweep."""
    sweeps = Sweeps(3, maxdim=20, cutoff=1e-10)
    assert len(sweeps) == 3
    assert sweeps.nsweep == 3
    for record in sweeps:
        assert record == SweepParams(maxdim=20, mindim=1, cutoff=1e-10, noise=0.0)


def test_short_lists_repeat_last_value() -> None:
    """Per-sweep lists are padded with their last entry."""
    sweeps = Sweeps(5, maxdim=[10, 20, 100], noise=[1e-5, 1e-7, 0.0])
    assert [sweeps.maxdim(sw) for sw in range(5)] == [10, 20, 100, 100, 100]
    assert [sweeps.noise(sw) for sw in range(5)] == [1e-5, 1e-7, 0.0, 0.0, 0.0]
    assert sweeps.mindim(4) == 1
    assert sweeps.cutoff(2) == 1e-8
    assert sweeps[1].maxdim == 20


def test_long_lists_are_cut() -> None:
    """Entries beyond the number of sweeps are ignored."""
    sweeps = Sweeps(2, maxdim=[4, 8, 16])
    assert [record.maxdim for record in sweeps] == [4, 8]


def test_records_are_frozen() -> None:
    """Sweep records cannot be modified."""
    record = Sweeps(1)[0]
    with pytest.raises(AttributeError):
        record.maxdim = 5


@pytest.mark.parametrize(
    ("kwargs", "match"),
    [
        ({"nsweeps": 0}, "must be positive"),
        ({"nsweeps": 2, "maxdim": 0}, "at least 1"),
        ({"nsweeps": 2, "mindim": [1, 0]}, "at least 1"),
        ({"nsweeps": 2, "cutoff": -1.0}, "non-negative"),
        ({"nsweeps": 2, "noise": [0.1, -0.1]}, "non-negative"),
        ({"nsweeps": 2, "maxdim": []}, "must not be empty"),
    ],
)
def test_invalid_schedules(kwargs: dict, match: str) -> None:
    """Invalid entries raise ValueError."""
    with pytest.raises(ValueError, match=match):
        Sweeps(**kwargs)


def test_from_table() -> None:
    """Table rows become sweeps."""
    sweeps = Sweeps.from_table(["maxdim", "cutoff", "noise"], [10, 1e-8, 1e-5], [20, 1e-10, 0.0])
    assert len(sweeps) == 2
    assert sweeps[0] == SweepParams(maxdim=10, mindim=1, cutoff=1e-8, noise=1e-5)
    assert sweeps[1] == SweepParams(maxdim=20, mindim=1, cutoff=1e-10, noise=0.0)


def test_from_table_errors() -> None:
    """Unknown columns, empty tables and short rows are rejected."""
    with pytest.raises(ValueError, match="Unknown sweep table columns"):
        Sweeps.from_table(["maxdim", "bond"], [10, 2])
    with pytest.raises(ValueError, match="at least one row"):
        Sweeps.from_table(["maxdim"])
    with pytest.raises(ValueError, match="does not match header"):
        Sweeps.from_table(["maxdim", "cutoff"], [10])


def test_repr_lists_sweeps() -> None:
    """The representation has one line per sweep."""
    text = repr(Sweeps(2, maxdim=[5, 10]))
    lines = text.splitlines()
    assert lines[0] == "Sweeps(2)"
    assert "maxdim=10" in lines[2]


def test_params_defaults() -> None:
    """Defaults follow the engine conventions."""
    params = DMRGParams()
    assert params.which_decomp == "automatic"
    assert isinstance(params.observer, NoObserver)
    assert not params.quiet
    assert params.eigsolve_krylovdim == 3
    assert params.eigsolve_maxiter == 1
    assert params.eigsolve_tol == 1e-14
    assert params.weight == 1.0
    assert params.tracer is None


def test_params_from_kwargs() -> None:
    """Keyword arguments map onto the fields."""
    observer = DMRGObserver(1e-6)
    params = DMRGParams.from_kwargs(observer=observer, quiet=True, eigsolve_krylovdim=8)
    assert params.observer is observer
    assert params.quiet
    assert params.eigsolve_krylovdim == 8


@pytest.mark.parametrize(("key", "replacement"), [("maxiter", "eigsolve_maxiter"), ("errgoal", "eigsolve_tol")])
def test_removed_keywords(key: str, replacement: str) -> None:
    """Removed keywords name their replacement."""
    with pytest.raises(ValueError, match=replacement):
        DMRGParams.from_kwargs(**{key: 2})


def test_long_form_aliases() -> None:
    """Long-form names map onto the short field names."""
    params = DMRGParams.from_kwargs(
        decomposition_mode="eigen", eigensolve_tol=1e-10, eigensolve_krylov_dim=6, eigensolve_max_iter=2
    )
    assert params.which_decomp == "eigen"
    assert params.eigsolve_tol == 1e-10
    assert params.eigsolve_krylovdim == 6
    assert params.eigsolve_maxiter == 2


def test_alias_and_field_together() -> None:
    """A setting given under both of its names is rejected."""
    with pytest.raises(TypeError, match="more than once"):
        DMRGParams.from_kwargs(eigsolve_tol=1e-10, eigensolve_tol=1e-12)


def test_unknown_keyword() -> None:
    """Unknown keywords raise TypeError."""
    with pytest.raises(TypeError):
        DMRGParams.from_kwargs(max_bond=10)


@pytest.mark.parametrize(
    ("kwargs", "match"),
    [
        ({"which_decomp": "qr"}, "which_decomp"),
        ({"eigsolve_krylovdim": 0}, "at least 1"),
        ({"eigsolve_tol": -1.0}, "non-negative"),
        ({"weight": 0.0}, "positive"),
    ],
)
def test_invalid_params(kwargs: dict, match: str) -> None:
    """Invalid configurations are rejected."""
    with pytest.raises(ValueError, match=match):
        DMRGParams(**kwargs)
