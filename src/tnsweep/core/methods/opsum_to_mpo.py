# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""OpSum to MPO compilation.

This module turns a symbolic ``OpSum`` into an exact, compressed MPO in three steps:

1. ``sort_each_term``: orders the operators of every term by site, attaches the local pieces of the
   Jordan-Wigner string ("<op> * F") and the fermionic reordering sign.
2. ``sort_merge_terms``: sorts the terms by operator content and adds up the coefficients of equal terms.
3. ``svd_mpo`` / ``qn_svd_mpo``: sweeps through the chain; at every bond the coefficients of all terms that
   cross it form a matrix between distinct left parts and distinct right parts ("tails"). Its right singular
   vectors span the link space, so the bond dimension is 2 + rank of that matrix. The extra two link states
   are the "finished" state (index 0, identity to the right) and the "not yet started" state (last index,
   identity to the left). The QN-conserving variant splits each coefficient matrix into blocks of equal
   quantum number and records the charge of every link index.

For ``sum_i Sz_i Sz_{i+1}`` this yields a link dimension of 3 on every internal bond.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, NamedTuple

import numpy as np

from ..data_structures.networks import MPO
from ..data_structures.observers import trace_phase
from ..data_structures.opsum import Op, OpSum, Term
from ..libraries.site_library import QN, QNError, qn_add
from .decompositions import truncation_rank

if TYPE_CHECKING:
    import contextlib
    from collections.abc import Callable, Hashable, Sequence

    from numpy.typing import NDArray

    from ..libraries.site_library import SiteType

logger = logging.getLogger(__name__)

# Link states shared by all bonds
FINISHED = 0
STRING = "F"
IDENTITY = "Id"


class EmptyOpSumError(ValueError):
    """Raised when an MPO is requested from an OpSum without terms."""


class ParityOddTermError(ValueError):
    """Raised for terms with an odd number of fermionic operators."""


class SiteMismatchError(ValueError):
    """Raised when an on-site operator product mixes different sites."""


class _SiteElement(NamedTuple):
    """One entry of the symbolic MPO tensor at a site."""

    row_qn: QN | None
    col_qn: QN | None
    row: int
    col: int
    coefficient: complex
    ops: tuple[Op, ...]


def parity_sign(perm: Sequence[int]) -> int:
    """Sign of the permutation that sorts ``perm``.

    Returns:
        +1 for an even number of inversions, -1 otherwise.
    """
    inversions = 0
    for i, a in enumerate(perm):
        for b in perm[i + 1 :]:
            if a > b:
                inversions += 1
    return -1 if inversions % 2 else 1


def _check_sites(term: Term, sites: Sequence[SiteType]) -> None:
    for op in term.ops:
        if not 0 <= op.site < len(sites):
            msg = f"Operator {op!r} acts outside the chain of length {len(sites)}."
            raise ValueError(msg)


def _is_fermionic(op: Op, sites: Sequence[SiteType]) -> bool:
    return sites[op.site].has_fermion_string(op.name)


def _attach_string(op: Op, sites: Sequence[SiteType]) -> Op:
    # only strings attached by an earlier pass are skipped; a hand-written "* F" is part of the operator
    if op.jw_string:
        return op
    if op.is_numeric:
        name = op.name @ sites[op.site].op(STRING)
    else:
        name = f"{op.name} * {STRING}"
    return Op(name, op.site, op.param_dict, jw_string=True)


def sort_each_term(opsum: OpSum, sites: Sequence[SiteType]) -> OpSum:
    """Bring every term into site order.

    Sorting is stable, so operators on the same site keep their product order. Walking the sorted product from
    right to left, the rightmost operator on every site that has an odd number of fermionic operators to its
    right becomes "<op> * F". The sign of the permutation restricted to the fermionic operators is multiplied
    into the coefficient.

    Args:
        opsum: Operator sum; it is not modified.
        sites: Site basis of the chain.

    Returns:
        The canonical operator sum.

    Raises:
        ParityOddTermError: If a term contains an odd number of fermionic operators.
    """
    length = len(sites)
    result = OpSum()
    for term in opsum:
        _check_sites(term, sites)
        n_ops = len(term.ops)
        perm: list[int | None] = sorted(range(n_ops), key=lambda k: term.ops[k].site)
        ops = [term.ops[k] for k in perm]

        # the string is placed at most once per site
        prev_site = length
        parity = 1
        for n in reversed(range(n_ops)):
            op = ops[n]
            fermionic = _is_fermionic(op, sites)
            if parity == -1 and op.site < prev_site:
                ops[n] = _attach_string(op, sites)
            prev_site = op.site
            if fermionic:
                parity = -parity
            else:
                perm[n] = None
        if parity == -1:
            msg = f"Parity-odd fermionic terms are not supported: {term!r}."
            raise ParityOddTermError(msg)

        sign = parity_sign([p for p in perm if p is not None])
        result.add_term(Term(sign * term.coefficient, ops))
    return result


def has_numeric_ops(opsum: OpSum) -> bool:
    """Check whether any operator carries a numeric matrix as its name.

    Returns:
        True if at least one operator is numeric.
    """
    return any(op.is_numeric for term in opsum for op in term.ops)


def sort_merge_terms(opsum: OpSum) -> OpSum:
    """Sort terms by operator content and add up the coefficients of equal terms.

    Zero coefficients are kept. Sums containing numeric operators are returned unchanged.

    Args:
        opsum: Operator sum in canonical form.

    Returns:
        The merged operator sum.
    """
    if len(opsum) == 0 or has_numeric_ops(opsum):
        return opsum
    terms = sorted(opsum, key=Term.content_key)
    merged: list[Term] = []
    last = terms[0]
    coefficient = last.coefficient
    for term in terms[1:]:
        if term.ops == last.ops:
            coefficient += term.coefficient
        else:
            merged.append(Term(coefficient, last.ops))
            last = term
            coefficient = term.coefficient
    merged.append(Term(coefficient, last.ops))
    return OpSum(merged)


def determine_val_type(terms: Sequence[Term]) -> type[np.floating[Any]] | type[np.complexfloating[Any, Any]]:
    """Scalar type of the coefficient matrices.

    Returns:
        ``np.complex128`` if any coefficient is complex, ``np.float64`` otherwise.
    """
    for term in terms:
        if np.iscomplexobj(term.coefficient) and np.imag(term.coefficient) != 0:
            return np.complex128
    return np.float64


def site_product(sites: Sequence[SiteType], ops: Sequence[Op]) -> NDArray[np.complex128]:
    """Matrix of a product of operators acting on one site.

    Returns:
        The operator matrix, multiplied in product order.

    Raises:
        SiteMismatchError: If the operators do not all act on the same site.
    """
    site = ops[0].site
    mat = np.asarray(sites[site].op(ops[0].name, **ops[0].param_dict), dtype=np.complex128)
    for op in ops[1:]:
        if op.site != site:
            msg = f"Mismatch of site number in on-site product {list(ops)!r}."
            raise SiteMismatchError(msg)
        mat = mat @ sites[site].op(op.name, **op.param_dict)
    return mat


def _flux(ops: Sequence[Op], sites: Sequence[SiteType], zero: QN) -> QN:
    q = zero
    for op in ops:
        q = qn_add(q, sites[op.site].op_flux(op.name, **op.param_dict))
    return q


def _link_position(link_map: dict[Hashable, int], key: Hashable, tail: tuple[Op, ...]) -> int:
    # empty tails need no link
    if not tail:
        return -1
    return link_map.setdefault(key, len(link_map))


def _right_basis(
    entries: list[tuple[int, int, complex]],
    n_cols: int,
    val_type: type[np.number[Any]],
    *,
    cutoff: float,
    maxdim: int | None,
    mindim: int,
) -> NDArray[np.number[Any]]:
    """Truncated right singular vectors of one block of the bond coefficient matrix.

    Returns:
        Matrix of shape (n_cols, kept) whose rows are indexed by the global tail index of the bond.
    """
    rows = sorted({r for r, _, _ in entries})
    cols = sorted({c for _, c, _ in entries})
    row_pos = {r: i for i, r in enumerate(rows)}
    col_pos = {c: i for i, c in enumerate(cols)}
    mat = np.zeros((len(rows), len(cols)), dtype=val_type)
    is_complex = np.iscomplexobj(mat)
    for r, c, coefficient in entries:
        mat[row_pos[r], col_pos[c]] += coefficient if is_complex else np.real(coefficient)
    _, s_vec, v_mat = np.linalg.svd(mat, full_matrices=False)
    keep, _ = truncation_rank(s_vec**2, cutoff=cutoff, maxdim=maxdim, mindim=mindim)
    basis = np.zeros((n_cols, keep), dtype=val_type)
    basis[cols, :] = v_mat[:keep, :].conj().T
    return basis


def _split(term: Term, n: int) -> tuple[tuple[Op, ...], tuple[Op, ...], tuple[Op, ...]]:
    left = tuple(op for op in term.ops if op.site < n)
    onsite = tuple(op for op in term.ops if op.site == n)
    right = tuple(op for op in term.ops if op.site > n)
    return left, onsite, right


def _compile(
    opsum: OpSum,
    sites: Sequence[SiteType],
    *,
    conserve_qns: bool,
    cutoff: float,
    maxdim: int | None,
    mindim: int,
) -> tuple[list[NDArray[np.complex128]], list[list[QN]] | None]:
    """Shared core of ``svd_mpo`` and ``qn_svd_mpo``.

    Link keys are plain tails in the dense case and ``(tail, charge)`` pairs in the QN case; the charge of a
    link state is the total flux of the operators to the left of the bond.

    Returns:
        MPO tensors (phys_out, phys_in, left, right) and, for the QN case, the charge of every link index.
    """
    # constant shifts are compiled as scaled identities on the first site
    terms = [term if term.ops else Term(term.coefficient, (Op(IDENTITY, 0),)) for term in opsum]
    length = len(sites)
    val_type = determine_val_type(terms)
    zero = sites[0].qn_zero if conserve_qns else None

    def key(tail: tuple[Op, ...], charge: QN | None) -> Hashable:
        return (tail, charge) if conserve_qns else tail

    elements: list[list[_SiteElement]] = [[] for _ in range(length)]
    # bases[b][charge]: right singular vectors of bond b (between sites b and b+1)
    bases: list[dict[QN | None, NDArray[np.number[Any]]]] = [{} for _ in range(length)]

    right_map: dict[Hashable, int] = {}
    for n in range(length):
        left_map: dict[Hashable, int] = {}
        next_right_map: dict[Hashable, int] = {}
        bond_blocks: dict[QN | None, list[tuple[int, int, complex]]] = {}
        for term in terms:
            if not term.ops[0].site <= n <= term.ops[-1].site:
                continue
            left, onsite, right = _split(term, n)
            left_qn = _flux(left, sites, zero) if conserve_qns else None
            right_qn = qn_add(left_qn, _flux(onsite, sites, zero)) if conserve_qns else None

            bond_col = -1
            if left:
                bond_row = _link_position(left_map, key(left, left_qn), left)
                bond_col = _link_position(right_map, key(onsite + right, left_qn), onsite + right)
                bond_blocks.setdefault(left_qn, []).append((bond_row, bond_col, term.coefficient))

            col = _link_position(next_right_map, key(right, right_qn), right)
            coefficient = term.coefficient if bond_col == -1 else 1.0
            if not onsite:
                fermionic_right = sum(_is_fermionic(op, sites) for op in right) % 2 == 1
                onsite = (Op(STRING if fermionic_right else IDENTITY, n),)
            elements[n].append(_SiteElement(left_qn, right_qn, bond_col, col, coefficient, onsite))

        # passing and ending elements are shared by all terms with the same tail
        shared = list(dict.fromkeys(el for el in elements[n] if el.row != -1))
        elements[n] = [el for el in elements[n] if el.row == -1] + shared
        if n > 0:
            for charge, entries in bond_blocks.items():
                bases[n - 1][charge] = _right_basis(
                    entries, len(right_map), val_type, cutoff=cutoff, maxdim=maxdim, mindim=mindim
                )
        right_map = next_right_map

    # link layout of every bond: [finished] + blocks in charge order + [not started]
    offsets: list[dict[QN | None, int]] = []
    link_dims: list[int] = []
    link_qns: list[list[QN]] | None = [] if conserve_qns else None
    for b in range(length - 1):
        charges = sorted(bases[b], key=lambda q: () if q is None else q)
        offset = 1
        block_offsets: dict[QN | None, int] = {}
        qns: list[QN] = [zero] if conserve_qns else []
        for charge in charges:
            block_offsets[charge] = offset
            offset += bases[b][charge].shape[1]
            if conserve_qns:
                qns.extend([charge] * bases[b][charge].shape[1])
        offsets.append(block_offsets)
        link_dims.append(offset + 1)
        if link_qns is not None:
            link_qns.append([*qns, zero])

    tensors: list[NDArray[np.complex128]] = []
    for n in range(length):
        d = sites[n].dim
        dim_left = 2 if n == 0 else link_dims[n - 1]
        dim_right = 2 if n == length - 1 else link_dims[n]
        start_left = dim_left - 1
        tensor = np.zeros((d, d, dim_left, dim_right), dtype=np.complex128)
        for el in elements[n]:
            if abs(el.coefficient) <= np.finfo(float).eps:
                continue
            link = np.zeros((dim_left, dim_right), dtype=np.complex128)
            if el.row == -1 and el.col == -1:
                # on-site term
                link[start_left, FINISHED] += el.coefficient
            elif el.row == -1:
                # term starting on site n
                v_right = bases[n][el.col_qn]
                off = offsets[n][el.col_qn]
                link[start_left, off : off + v_right.shape[1]] += el.coefficient * v_right[el.col, :]
            elif el.col == -1:
                # term ending on site n
                v_left = bases[n - 1][el.row_qn]
                off = offsets[n - 1][el.row_qn]
                link[off : off + v_left.shape[1], FINISHED] += el.coefficient * v_left[el.row, :].conj()
            else:
                v_left = bases[n - 1][el.row_qn]
                v_right = bases[n][el.col_qn]
                off_l = offsets[n - 1][el.row_qn]
                off_r = offsets[n][el.col_qn]
                link[off_l : off_l + v_left.shape[1], off_r : off_r + v_right.shape[1]] += el.coefficient * np.outer(
                    v_left[el.row, :].conj(), v_right[el.col, :]
                )
            tensor += np.einsum("ij,lr->ijlr", site_product(sites, el.ops), link)
        identity = np.asarray(sites[n].op(IDENTITY), dtype=np.complex128)
        tensor[:, :, FINISHED, FINISHED] += identity
        tensor[:, :, start_left, dim_right - 1] += identity
        tensors.append(tensor)

    # close the chain: enter through "not started", leave through "finished"
    tensors[0] = tensors[0][:, :, -1:, :]
    tensors[-1] = tensors[-1][:, :, :, :1]
    return tensors, link_qns


def _to_mpo(
    tensors: list[NDArray[np.complex128]],
    sites: Sequence[SiteType],
    link_qns: list[list[QN]] | None,
) -> MPO:
    mpo = MPO()
    mpo.custom(tensors, transpose=False)
    mpo.sites = list(sites)
    mpo.link_qns = link_qns
    return mpo


def svd_mpo(
    opsum: OpSum,
    sites: Sequence[SiteType],
    *,
    cutoff: float = 1e-15,
    maxdim: int | None = None,
    mindim: int = 1,
) -> MPO:
    """Compile a canonical, merged operator sum into a dense MPO.

    Args:
        opsum: Output of ``sort_each_term`` and ``sort_merge_terms``.
        sites: Site basis of the chain.
        cutoff: Relative discarded weight allowed in the bond SVDs.
        maxdim: Optional cap on the number of singular vectors per bond.
        mindim: Minimal number of singular vectors per bond.

    Returns:
        The MPO.
    """
    tensors, _ = _compile(opsum, sites, conserve_qns=False, cutoff=cutoff, maxdim=maxdim, mindim=mindim)
    return _to_mpo(tensors, sites, None)


def qn_svd_mpo(
    opsum: OpSum,
    sites: Sequence[SiteType],
    *,
    cutoff: float = 1e-15,
    maxdim: int | None = None,
    mindim: int = 1,
) -> MPO:
    """Compile a canonical, merged operator sum into a block-sparse MPO with charged links.

    Every term must conserve the total charge. ``maxdim`` and ``mindim`` act per charge block.

    Args:
        opsum: Output of ``sort_each_term`` and ``sort_merge_terms``.
        sites: Site basis of the chain; every site must carry quantum numbers.
        cutoff: Relative discarded weight allowed in the bond SVDs.
        maxdim: Optional cap on the number of singular vectors per block.
        mindim: Minimal number of singular vectors per block.

    Returns:
        The MPO with ``link_qns`` set.

    Raises:
        QNError: If a site carries no quantum numbers or a term changes the total charge.
    """
    if not all(site.has_qns for site in sites):
        msg = "qn_svd_mpo requires quantum numbers on every site."
        raise QNError(msg)
    zero = sites[0].qn_zero
    for term in opsum:
        if _flux(term.ops, sites, zero) != zero:
            msg = f"Term {term!r} does not conserve the quantum numbers of the site basis."
            raise QNError(msg)
    tensors, link_qns = _compile(opsum, sites, conserve_qns=True, cutoff=cutoff, maxdim=maxdim, mindim=mindim)
    return _to_mpo(tensors, sites, link_qns)


def opsum_to_mpo(
    opsum: OpSum,
    sites: Sequence[SiteType],
    *,
    cutoff: float = 1e-15,
    maxdim: int | None = None,
    mindim: int = 1,
    tracer: Callable[[str], contextlib.AbstractContextManager[Any]] | None = None,
) -> MPO:
    """Convert an operator sum into an MPO on the given site basis.

    The conversion compresses the sum of all terms exactly (up to ``cutoff``), usually reaching the minimal bond
    dimension. The QN-conserving compiler is selected when the site basis carries quantum numbers.

    Example:
        >>> os = OpSum()
        >>> for j in range(3):
        ...     os.add_term("Sz", j, "Sz", j + 1)
        >>> H = opsum_to_mpo(os, siteinds("S=1/2", 4))

    Args:
        opsum: Operator sum; it is not modified.
        sites: Site basis of the chain.
        cutoff: Relative discarded weight allowed in the bond SVDs.
        maxdim: Optional cap on the MPO bond dimension.
        mindim: Minimal number of singular vectors per bond.
        tracer: Optional tracer wrapped around the compilation phases.

    Returns:
        The MPO.

    Raises:
        EmptyOpSumError: If the operator sum has no terms.
    """
    if len(opsum) == 0:
        msg = "OpSum has no terms."
        raise EmptyOpSumError(msg)

    opsum = opsum.copy()
    with trace_phase(tracer, "sort_each_term"):
        opsum = sort_each_term(opsum, sites)
    with trace_phase(tracer, "sort_merge_terms"):
        opsum = sort_merge_terms(opsum)

    logger.debug("Compiling %d terms on %d sites", len(opsum), len(sites))
    with trace_phase(tracer, "svd_mpo"):
        if sites[0].has_qns:
            return qn_svd_mpo(opsum, sites, cutoff=cutoff, maxdim=maxdim, mindim=mindim)
        return svd_mpo(opsum, sites, cutoff=cutoff, maxdim=maxdim, mindim=mindim)
