# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for the symbolic operator sum.

This module verifies construction of ``Op``, ``Term`` and ``OpSum`` objects from all supported inputs, their
value semantics (equality, ordering, hashing, immutability) and the error messages for malformed terms.
"""

from __future__ import annotations

import numpy as np
import pytest

from tnsweep.core.data_structures.opsum import Op, OpSum, Term, as_term


def test_op_value_semantics() -> None:
    """Ops compare by site, then name, then parameters."""
    a = Op("Sz", 1)
    b = Op("Sz", 1)
    assert a == b
    assert hash(a) == hash(b)
    assert Op("Sz", 0) < Op("Sx", 1)
    assert Op("Sx", 1) < Op("Sz", 1)
    assert Op("Rx", 0, {"theta": 0.1}) != Op("Rx", 0, {"theta": 0.2})
    assert repr(Op("Sz", 3)) == "Sz(3)"


def test_op_is_immutable() -> None:
    """Assigning to an Op fails."""
    op = Op("Sz", 0)
    with pytest.raises(AttributeError, match="immutable"):
        op.site = 2


def test_op_params() -> None:
    """Parameters are stored sorted and exposed as a fresh dict."""
    op = Op("Rx", 2, {"theta": 0.5, "alpha": 1})
    assert op.params == (("alpha", 1), ("theta", 0.5))
    params = op.param_dict
    params["theta"] = 3.0
    assert op.param_dict["theta"] == 0.5


def test_op_rejects_bad_input() -> None:
    """Op names must be strings or arrays and sites integers."""
    with pytest.raises(TypeError, match="name"):
        Op(3, 0)
    with pytest.raises(TypeError, match="site"):
        Op("Sz", 1.5)


def test_numeric_op_ordering() -> None:
    """Numeric names sort after symbolic ones and compare through their content."""
    mat = np.eye(2)
    assert Op(mat, 0).is_numeric
    assert Op("Sz", 0) < Op(mat, 0)
    assert Op(mat, 0) == Op(np.eye(2), 0)


def test_term_from_tuple() -> None:
    """The flat tuple form accepts an optional coefficient and parameter dicts."""
    term = Term.from_tuple((0.5, "S+", 0, "Rx", 2, {"theta": 0.1}, "S-", 1))
    assert term.coefficient == 0.5
    assert term.ops == (Op("S+", 0), Op("Rx", 2, {"theta": 0.1}), Op("S-", 1))
    assert term.sites == [0, 2, 1]
    assert len(term) == 3

    default = Term.from_tuple(("Sz", 0))
    assert default.coefficient == 1.0


@pytest.mark.parametrize(
    ("spec", "match"),
    [
        ((1.0,), "no operators"),
        ((1.0, "Sz"), "missing its site"),
        ((1.0, "Sz", 0, 3), "Expected an operator name"),
    ],
)
def test_term_from_tuple_errors(spec: tuple, match: str) -> None:
    """Malformed tuples raise ValueError."""
    with pytest.raises(ValueError, match=match):
        Term.from_tuple(spec)


def test_term_scaling() -> None:
    """Scaling and negation only touch the coefficient."""
    term = Term(2.0, [Op("Sz", 0)])
    assert term.scaled(0.5) == Term(1.0, [Op("Sz", 0)])
    assert (-term).coefficient == -2.0
    assert (-term).content_key() == term.content_key()


def test_as_term() -> None:
    """All accepted inputs normalize into a Term."""
    assert as_term(Op("Sz", 0)) == Term(1.0, [Op("Sz", 0)])
    assert as_term(("Sz", 0)) == Term(1.0, [Op("Sz", 0)])
    term = Term(3.0, [Op("Sz", 1)])
    assert as_term(term) is term
    with pytest.raises(TypeError, match="Cannot build a term"):
        as_term(["Sz", 0])


def test_opsum_add_term_inputs() -> None:
    """add_term accepts terms, ops, tuples and varargs."""
    os = OpSum()
    os.add_term(0.5, "S+", 0, "S-", 1)
    os.add_term(("Sz", 0, "Sz", 1))
    os.add_term(Op("Sz", 2))
    os.add_term(Term(2.0, [Op("Sx", 1)]))
    os.add("Sz", 3)
    assert len(os) == 5
    assert os[0] == Term(0.5, [Op("S+", 0), Op("S-", 1)])
    assert os[1].coefficient == 1.0
    assert os[2] == Term(1.0, [Op("Sz", 2)])
    assert [t.coefficient for t in os] == [0.5, 1.0, 1.0, 2.0, 1.0]


def test_opsum_subtract_and_chaining() -> None:
    """subtract_term appends the negated term and both calls chain."""
    os = OpSum().add_term(1.0, "Sz", 0).subtract_term(0.25, "Sx", 1)
    assert os.terms == [Term(1.0, [Op("Sz", 0)]), Term(-0.25, [Op("Sx", 1)])]


def test_opsum_copy_is_independent() -> None:
    """Copies do not share the term list."""
    os = OpSum().add_term("Sz", 0)
    other = os.copy()
    other.add_term("Sz", 1)
    assert len(os) == 1
    assert len(other) == 2
    assert os != other
    assert os == OpSum([Term(1.0, [Op("Sz", 0)])])


def test_opsum_terms_returns_copy() -> None:
    """Mutating the returned term list leaves the sum untouched."""
    os = OpSum().add_term("Sz", 0)
    terms = os.terms
    terms.clear()
    assert len(os) == 1
    assert "Sz(0)" in repr(os)
    assert repr(OpSum()) == "OpSum()"
