# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""tnsweep: two-site DMRG and an operator-sum to MPO compiler.

Typical use::

    from tnsweep import MPO, MPS, OpSum, Sweeps, dmrg, siteinds

    sites = siteinds("S=1/2", 10)
    os = OpSum()
    for j in range(9):
        os.add_term("Sz", j, "Sz", j + 1)
        os.add_term(0.5, "S+", j, "S-", j + 1)
        os.add_term(0.5, "S-", j, "S+", j + 1)
    H = MPO.from_opsum(os, sites)
    psi0 = MPS.random(10, 2, bond_dim=4)
    energy, psi = dmrg(H, psi0, Sweeps(5, maxdim=[10, 20, 100], cutoff=1e-10))
"""

from .core.data_structures.dmrg_parameters import DMRGParams, Sweeps
from .core.data_structures.networks import MPO, MPS
from .core.data_structures.observers import DMRGObserver, NoObserver, TimingTracer
from .core.data_structures.opsum import Op, OpSum, Term
from .core.libraries.site_library import siteinds
from .core.methods.eigensolver import eigsolve
from .core.methods.opsum_to_mpo import opsum_to_mpo
from .dmrg import dmrg

__all__ = [
    "MPO",
    "MPS",
    "DMRGObserver",
    "DMRGParams",
    "NoObserver",
    "Op",
    "OpSum",
    "Sweeps",
    "Term",
    "TimingTracer",
    "dmrg",
    "eigsolve",
    "opsum_to_mpo",
    "siteinds",
]
