# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Two-site DMRG.

This module implements the sweep-optimization engine that approximates the lowest eigenpair of a Hermitian
operator given as an MPO. A sweep consists of a forward half-sweep over the bonds 0..L-2 followed by a backward
half-sweep over L-2..0. On every bond the two site tensors are merged, the merged tensor is optimized by a Krylov
eigensolver on the projected operator, and the optimum is split back with truncation. The forward half-sweep
leaves left-orthonormal tensors behind, the backward half-sweep right-orthonormal ones.

The operator can be
  - an ``MPO``,
  - a list of MPOs, optimized as their sum without adding them,
  - a pair ``(MPO, [MPS, ...])``, penalizing overlap with the given states (excited states),
  - an already constructed projector (``ProjMPO``, ``ProjMPOSum``, ``ProjMPO_MPS``).

The engine has no convergence criterion of its own: it runs all sweeps unless the observer's ``checkdone``
returns True at the end of a sweep.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import numpy as np
from tqdm import tqdm

from .core.data_structures.dmrg_parameters import DMRGParams, check_deprecated
from .core.data_structures.networks import MPO, MPS
from .core.data_structures.observers import trace_phase
from .core.methods.decompositions import merge_two_sites, replace_bond
from .core.methods.eigensolver import eigsolve
from .core.methods.projected_operators import ProjMPO, ProjMPO_MPS, ProjMPOSum

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from .core.data_structures.dmrg_parameters import Sweeps

logger = logging.getLogger(__name__)

Projector = ProjMPO | ProjMPOSum | ProjMPO_MPS


def make_projector(operator: Any, weight: float = 1.0) -> Projector:  # noqa: ANN401
    """Wrap an operator specification into a projector.

    Args:
        operator: MPO, list of MPOs, ``(MPO, [MPS, ...])`` or a projector.
        weight: Penalty weight for the excited-state form.

    Returns:
        The projector.

    Raises:
        TypeError: For unsupported operator specifications.
    """
    if isinstance(operator, (ProjMPO, ProjMPOSum, ProjMPO_MPS)):
        return operator
    if isinstance(operator, MPO):
        return ProjMPO(operator)
    if (
        isinstance(operator, tuple)
        and len(operator) == 2
        and isinstance(operator[0], MPO)
        and isinstance(operator[1], (list, tuple))
        and all(isinstance(state, MPS) for state in operator[1])
    ):
        return ProjMPO_MPS(operator[0], operator[1], weight)
    if isinstance(operator, (list, tuple)) and operator and all(isinstance(op, MPO) for op in operator):
        return ProjMPOSum(operator)
    msg = f"Cannot build a projected operator from {type(operator).__name__}."
    raise TypeError(msg)


def _dense_operator(projector: Projector) -> NDArray[np.complex128]:
    """Dense matrix of the projected operator, used for single-site chains."""
    if isinstance(projector, ProjMPO):
        return projector.H.to_matrix()
    if isinstance(projector, ProjMPOSum):
        return sum(_dense_operator(term) for term in projector.terms)
    mat = _dense_operator(projector.PH)
    for proj in projector.pm:
        vec = proj.M.to_vec()
        mat = mat + projector.weight * np.outer(vec, vec.conj())
    return mat


def _solve_single_site(projector: Projector, psi: MPS) -> float:
    mat = _dense_operator(projector)
    vals, vecs = np.linalg.eigh(0.5 * (mat + mat.conj().T))
    psi.tensors[0] = vecs[:, 0].reshape(-1, 1, 1).astype(np.complex128)
    return float(vals[0])


def dmrg(
    operator: Any,  # noqa: ANN401
    psi0: MPS,
    sweeps: Sweeps,
    params: DMRGParams | None = None,
    **kwargs: Any,  # noqa: ANN401
) -> tuple[float, MPS]:
    """Approximate the lowest eigenpair of an operator with two-site DMRG.

    Args:
        operator: MPO, list of MPOs, ``(MPO, [MPS, ...])`` or a projector.
        psi0: Initial state; it is copied and never modified.
        sweeps: Truncation schedule, one record per sweep.
        params: Engine configuration. Alternatively, its fields are accepted as keyword arguments.
        **kwargs: Fields of ``DMRGParams``, e.g. ``observer``, ``quiet`` or ``eigsolve_krylovdim``.

    Returns:
        energy: Eigenvalue estimate of the last bond update.
        psi: The optimized state.

    Raises:
        ValueError: For removed keywords (``maxiter``, ``errgoal``) or mismatched lengths.
        TypeError: For unknown keywords, or keywords combined with ``params``.
    """
    check_deprecated(kwargs)
    if params is None:
        params = DMRGParams.from_kwargs(**kwargs)
    elif kwargs:
        msg = "Pass the engine configuration either as params or as keyword arguments, not both."
        raise TypeError(msg)

    projector = make_projector(operator, params.weight)
    if projector.length != psi0.length:
        msg = "The lengths of the state and the operator must match."
        raise ValueError(msg)

    psi = psi0.copy()
    if psi.length == 1:
        energy = _solve_single_site(projector, psi)
        if not params.quiet:
            logger.info("Single-site chain solved exactly, energy=%.12f", energy)
        return energy, psi

    tracer = params.tracer
    observer = params.observer
    psi.set_canonical_form(0)
    projector.reset()
    with trace_phase(tracer, "position"):
        projector.position(psi, 0)

    num_bonds = psi.length - 1
    energy = float("nan")
    for sw, record in enumerate(tqdm(sweeps, desc="DMRG sweeps", ncols=80, disable=params.quiet)):
        start = time.perf_counter()
        for half_sweep, ortho, bonds in (
            (1, "left", range(num_bonds)),
            (2, "right", reversed(range(num_bonds))),
        ):
            for bond in bonds:
                with trace_phase(tracer, "position"):
                    projector.position(psi, bond)
                with trace_phase(tracer, "merge"):
                    phi = merge_two_sites(psi.tensors[bond], psi.tensors[bond + 1])
                with trace_phase(tracer, "eigsolve"):
                    vals, vecs = eigsolve(
                        projector,
                        phi,
                        1,
                        "SR",
                        ishermitian=True,
                        tol=params.eigsolve_tol,
                        krylovdim=params.eigsolve_krylovdim,
                        maxiter=params.eigsolve_maxiter,
                        verbosity=params.eigsolve_verbosity,
                    )
                energy = float(vals[0])
                phi = vecs[0]

                drho = None
                if record.noise > 0:
                    drho = record.noise * projector.noiseterm(phi, ortho)

                with trace_phase(tracer, "replace_bond"):
                    spec = replace_bond(
                        psi,
                        bond,
                        phi,
                        maxdim=record.maxdim,
                        mindim=record.mindim,
                        cutoff=record.cutoff,
                        eigen_perturbation=drho,
                        ortho=ortho,
                        which_decomp=params.which_decomp,
                    )
                observer.measure(
                    energy=energy,
                    psi=psi,
                    bond=bond,
                    sweep=sw + 1,
                    half_sweep=half_sweep,
                    spec=spec,
                    quiet=params.quiet,
                )

        if not params.quiet:
            logger.info(
                "After sweep %d energy=%.12f maxlinkdim=%d time=%.3f",
                sw + 1,
                energy,
                psi.get_max_bond(),
                time.perf_counter() - start,
            )
        if observer.checkdone(quiet=params.quiet):
            break
    return energy, psi
