# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for the site library.

This module checks the local operator matrices of every site type, compound and parametrized operator names,
the fermionic predicate, quantum-number fluxes and the ``siteinds`` helper.
"""

from __future__ import annotations

import numpy as np
import pytest

from tnsweep.core.libraries.site_library import (
    Electron,
    Fermion,
    QNError,
    Qubit,
    SpinHalf,
    SpinOne,
    has_fermion_string,
    qn_add,
    qn_neg,
    siteinds,
)


@pytest.mark.parametrize("site_type", [SpinHalf, SpinOne, Qubit, Fermion, Electron])
def test_identity_and_string_defaults(site_type: type) -> None:
    """Every site type defines Id and F of its dimension."""
    site = site_type()
    assert np.allclose(site.op("Id"), np.eye(site.dim))
    assert site.op("F").shape == (site.dim, site.dim)


def test_spin_half_algebra() -> None:
    """Spin-1/2 operators satisfy the su(2) commutation relations."""
    site = SpinHalf()
    sp, sm, sz = site.op("S+"), site.op("S-"), site.op("Sz")
    assert np.allclose(sp @ sm - sm @ sp, 2 * sz)
    assert np.allclose(site.op("Sx"), 0.5 * (sp + sm))
    assert np.allclose(site.op("Sy"), -0.5j * (sp - sm))


def test_spin_one_casimir() -> None:
    """S^2 equals s(s+1) = 2 on the spin-1 site."""
    site = SpinOne()
    casimir = site.op("Sx") @ site.op("Sx") + site.op("Sy") @ site.op("Sy") + site.op("Sz2")
    assert np.allclose(casimir, 2 * np.eye(3))


def test_compound_name_is_matrix_product() -> None:
    """Compound names multiply their factors in written order."""
    site = SpinHalf()
    assert np.allclose(site.op("S+ * S-"), site.op("ProjUp"))
    assert np.allclose(site.op("S- * S+"), site.op("ProjDn"))


def test_numeric_operator_passthrough() -> None:
    """Numeric matrices are returned unchanged and checked for shape."""
    site = SpinHalf()
    mat = np.array([[1.0, 2.0], [3.0, 4.0]])
    assert site.op(mat) is mat
    with pytest.raises(ValueError, match="does not act on a site"):
        site.op(np.eye(3))


def test_unknown_operator() -> None:
    """Unknown names raise a KeyError listing the known operators."""
    with pytest.raises(KeyError, match="not defined"):
        SpinHalf().op("Cdag")


def test_parametrized_rotation() -> None:
    """Rx(pi) equals -iX on a qubit."""
    site = Qubit()
    assert np.allclose(site.op("Rx", theta=np.pi), -1j * site.op("X"))
    assert np.allclose(site.op("Rz", theta=0.0), np.eye(2))
    assert "Ry" in site.op_names


def test_fermion_string_predicate() -> None:
    """Only an odd number of fermionic factors carries a string."""
    site = Fermion()
    assert site.has_fermion_string("C")
    assert site.has_fermion_string("Cdag * F")
    assert not site.has_fermion_string("Cdag * C")
    assert not site.has_fermion_string("N")
    assert not site.has_fermion_string("A")
    assert not site.has_fermion_string(site.op("C"))
    assert has_fermion_string("Cdagup", Electron())
    assert not has_fermion_string("Sz", SpinHalf())


def test_electron_anticommutation() -> None:
    """The two orbitals of one site anticommute."""
    site = Electron()
    cup, cdn = site.op("Cup"), site.op("Cdn")
    assert np.allclose(cup @ cdn + cdn @ cup, 0)
    assert np.allclose(cup @ site.op("Cdagup") + site.op("Cdagup") @ cup, np.eye(4))
    assert np.allclose(cdn @ site.op("Cdagdn") + site.op("Cdagdn") @ cdn, np.eye(4))
    assert np.allclose(site.op("Cdagup * Cup"), site.op("Nup"))
    assert np.allclose(site.op("F"), site.op("Fup") @ site.op("Fdn"))


def test_state_qns_only_when_conserved() -> None:
    """Quantum numbers are attached on request."""
    assert SpinHalf().state_qns is None
    assert not SpinHalf().has_qns
    site = SpinHalf(conserve_qns=True)
    assert site.has_qns
    assert site.state_qns == [(1,), (-1,)]
    assert site.qn_zero == (0,)
    assert Electron(conserve_qns=True).qn_zero == (0, 0)


def test_op_flux() -> None:
    """Fluxes of raising, lowering and diagonal operators."""
    spin = SpinHalf(conserve_qns=True)
    assert spin.op_flux("S+") == (2,)
    assert spin.op_flux("S-") == (-2,)
    assert spin.op_flux("Sz") == (0,)
    electron = Electron(conserve_qns=True)
    assert electron.op_flux("Cdn") == (-1, 1)
    assert electron.op_flux("Cdagup * F") == (1, 1)
    assert SpinHalf().op_flux("Sx") == (0,)


def test_op_flux_without_definite_charge() -> None:
    """Operators mixing charge sectors have no flux."""
    with pytest.raises(QNError, match="no definite"):
        SpinHalf(conserve_qns=True).op_flux("Sx")


def test_qn_arithmetic() -> None:
    """Quantum numbers add elementwise."""
    assert qn_add((1, -1), (2, 3)) == (3, 2)
    assert qn_neg((1, -2)) == (-1, 2)


def test_siteinds() -> None:
    """siteinds resolves names and classes."""
    sites = siteinds("S=1/2", 3, conserve_qns=True)
    assert len(sites) == 3
    assert all(isinstance(site, SpinHalf) and site.has_qns for site in sites)
    assert isinstance(siteinds(Electron, 2)[1], Electron)
    with pytest.raises(ValueError, match="Unknown site type"):
        siteinds("S=3/2", 2)
    with pytest.raises(ValueError, match="positive"):
        siteinds("Qubit", 0)
