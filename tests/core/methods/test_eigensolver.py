# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for the Krylov eigensolver."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from tnsweep.core.methods.eigensolver import eigsolve


def random_hermitian(n: int, seed: int) -> np.ndarray:
    """Random complex Hermitian matrix.

    Returns:
        The matrix.
    """
    rng = np.random.default_rng(seed)
    a = rng.standard_normal((n, n)) + 1j * rng.standard_normal((n, n))
    return 0.5 * (a + a.conj().T)


@pytest.mark.parametrize("which", ["SR", "LR"])
def test_hermitian_extremal_eigenvalue(which: str) -> None:
    """Restarted Lanczos converges to the extremal eigenvalue.

    Args:
        which: Selection rule.
    """
    h = random_hermitian(30, seed=1)
    exact = np.linalg.eigvalsh(h)
    x0 = np.random.default_rng(2).standard_normal(30).astype(complex)
    values, vectors = eigsolve(lambda x: h @ x, x0, 1, which, krylovdim=20, maxiter=20, tol=1e-12)
    target = exact[0] if which == "SR" else exact[-1]
    assert np.isclose(values[0], target, atol=1e-9)
    vec = vectors[0]
    assert np.isclose(np.linalg.norm(vec), 1.0)
    np.testing.assert_allclose(h @ vec, values[0] * vec, atol=1e-6)
    assert np.isrealobj(values)


def test_full_krylov_space_is_exact() -> None:
    """A Krylov space as large as the problem gives all eigenvalues in one cycle."""
    h = random_hermitian(6, seed=3)
    x0 = np.ones(6, dtype=complex)
    values, vectors = eigsolve(lambda x: h @ x, x0, 3, "SR", krylovdim=10)
    np.testing.assert_allclose(values, np.linalg.eigvalsh(h)[:3], atol=1e-10)
    assert len(vectors) == 3
    overlap = np.vdot(vectors[0], vectors[1])
    assert abs(overlap) < 1e-8


def test_tensor_shaped_vectors() -> None:
    """The linear map receives and returns tensors of the start vector's shape."""
    h = np.diag(np.arange(8, dtype=float) - 3.0)
    shapes = []

    def apply(x: np.ndarray) -> np.ndarray:
        shapes.append(x.shape)
        return (h @ x.ravel()).reshape(x.shape)

    x0 = np.ones((2, 2, 2), dtype=complex)
    values, vectors = eigsolve(apply, x0, krylovdim=8)
    assert np.isclose(values[0], -3.0)
    assert vectors[0].shape == (2, 2, 2)
    assert set(shapes) == {(2, 2, 2)}


def test_invariant_subspace_breakdown() -> None:
    """An eigenvector as start vector stops the Krylov cycle without error."""
    h = np.diag([1.0, 2.0, 3.0, 4.0]).astype(complex)
    x0 = np.array([0, 1, 0, 0], dtype=complex)
    values, vectors = eigsolve(lambda x: h @ x, x0, 2, krylovdim=4)
    assert len(values) == 1
    assert np.isclose(values[0], 2.0)
    assert np.isclose(abs(vectors[0][1]), 1.0)


def test_one_dimensional_problem() -> None:
    """A scalar map is solved directly."""
    values, vectors = eigsolve(lambda x: -2.5 * x, np.array([3.0j]), krylovdim=3)
    assert np.isclose(values[0], -2.5)
    assert np.isclose(abs(vectors[0][0]), 1.0)


def test_arnoldi_non_hermitian() -> None:
    """Arnoldi finds the eigenvalue of largest magnitude of a non-normal matrix."""
    rng = np.random.default_rng(5)
    a = np.triu(rng.standard_normal((12, 12))) + np.diag(np.arange(12, dtype=float))
    exact = np.linalg.eigvals(a)
    target = exact[np.argmax(np.abs(exact))]
    x0 = rng.standard_normal(12).astype(complex)
    values, vectors = eigsolve(lambda x: a @ x, x0, 1, "LM", ishermitian=False, krylovdim=12)
    assert np.isclose(values[0], target)
    np.testing.assert_allclose(a @ vectors[0], values[0] * vectors[0], atol=1e-8)


def test_verbosity_logs(caplog: pytest.LogCaptureFixture) -> None:
    """Verbose runs report every cycle and the final residual."""
    h = random_hermitian(10, seed=6)
    with caplog.at_level(logging.INFO, logger="tnsweep.core.methods.eigensolver"):
        eigsolve(lambda x: h @ x, np.ones(10, dtype=complex), krylovdim=3, maxiter=2, tol=0.0, verbosity=2)
    messages = [record.getMessage() for record in caplog.records]
    assert sum("eigsolve cycle" in m for m in messages) == 2
    assert any("finished after 2 cycles" in m for m in messages)


def test_invalid_arguments() -> None:
    """Bad options are rejected before any work is done."""
    x0 = np.ones(3, dtype=complex)
    with pytest.raises(ValueError, match="which"):
        eigsolve(lambda x: x, x0, which="SM")
    with pytest.raises(ValueError, match="positive"):
        eigsolve(lambda x: x, x0, krylovdim=0)
    with pytest.raises(ValueError, match="vanish"):
        eigsolve(lambda x: x, np.zeros(3, dtype=complex))
