# Copyright (c) 2025 - 2026 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Symbolic Operator Sums.

This module implements the symbolic input of the MPO compiler:

- ``Op``: a named local operator acting on one site, with optional parameters.
- ``Term``: a coefficient times an ordered product of ``Op`` objects.
- ``OpSum``: an appendable sum of terms.

Example:
    >>> os = OpSum()
    >>> for j in range(3):
    ...     os.add_term("Sz", j, "Sz", j + 1)
    ...     os.add_term(0.5, "S+", j, "S-", j + 1)
    ...     os.add_term(0.5, "S-", j, "S+", j + 1)

``Op`` and ``Term`` are immutable values. ``OpSum`` only grows through ``add_term`` and ``subtract_term``.
"""

from __future__ import annotations

import numbers
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from numpy.typing import NDArray


def _name_key(name: str | NDArray[np.number]) -> tuple[int, Any]:
    # Symbolic names sort before numeric ones; arrays are compared through their raw bytes.
    if isinstance(name, np.ndarray):
        return (1, (name.shape, str(name.dtype), name.tobytes()))
    return (0, name)


class Op:
    """A local operator ``name`` acting on ``site``.

    Attributes:
        name: Operator name understood by the site type (e.g. ``"Sz"``), or a numeric matrix.
        site: Chain position (0-based).
        params: Operator parameters as a sorted tuple of ``(key, value)`` pairs.
        jw_string: True if the Jordan-Wigner string factor was attached by the canonicalizer. It does not take
            part in equality, so ``Op("C * F", 0)`` written by hand compares equal to an attached string.
    """

    __slots__ = ("_key", "jw_string", "name", "params", "site")

    def __init__(
        self,
        name: str | NDArray[np.number],
        site: int,
        params: Mapping[str, Any] | None = None,
        *,
        jw_string: bool = False,
    ) -> None:
        """Initializes the operator.

        Args:
            name: Operator name or numeric matrix.
            site: Chain position of the operator.
            params: Optional parameters of the operator.
            jw_string: Marks a string factor attached during canonicalization.

        Raises:
            TypeError: If the name or site have the wrong type.
        """
        if not isinstance(name, (str, np.ndarray)):
            msg = f"Operator name must be a string or a numeric array, got {type(name).__name__}."
            raise TypeError(msg)
        if isinstance(site, bool) or not isinstance(site, (int, np.integer)):
            msg = f"Operator site must be an integer, got {site!r}."
            raise TypeError(msg)
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "site", int(site))
        object.__setattr__(self, "params", tuple(sorted((params or {}).items())))
        object.__setattr__(self, "jw_string", jw_string)
        object.__setattr__(self, "_key", (self.site, _name_key(name), repr(self.params)))

    def __setattr__(self, key: str, value: object) -> None:
        """Op objects are immutable.

        Raises:
            AttributeError: Always.
        """
        msg = "Op is immutable."
        raise AttributeError(msg)

    @property
    def param_dict(self) -> dict[str, Any]:
        """Parameters as a fresh dictionary."""
        return dict(self.params)

    @property
    def is_numeric(self) -> bool:
        """True if the operator carries a numeric matrix instead of a name."""
        return isinstance(self.name, np.ndarray)

    def sort_key(self) -> tuple[Any, ...]:
        """Total order used to sort products and terms.

        Returns:
            A key comparing site first, then name, then parameters.
        """
        return self._key

    def __eq__(self, other: object) -> bool:
        """Value equality.

        Returns:
            True if site, name and parameters agree.
        """
        if not isinstance(other, Op):
            return NotImplemented
        return self._key == other._key

    def __lt__(self, other: Op) -> bool:
        """Ordering by ``sort_key``.

        Returns:
            True if this operator sorts before the other one.
        """
        return self._key < other._key

    def __hash__(self) -> int:
        """Hash consistent with equality.

        Returns:
            The hash of the sort key.
        """
        return hash(self._key)

    def __repr__(self) -> str:
        """Readable form such as ``Sz(3)``.

        Returns:
            The operator name, site and parameters.
        """
        name = "<array>" if self.is_numeric else self.name
        if self.params:
            args = ", ".join(f"{k}={v!r}" for k, v in self.params)
            return f"{name}({self.site}; {args})"
        return f"{name}({self.site})"


class Term:
    """A coefficient times an ordered product of local operators.

    Attributes:
        coefficient: Real or complex prefactor.
        ops: The operator product, in multiplication order.
    """

    __slots__ = ("coefficient", "ops")

    def __init__(self, coefficient: complex, ops: tuple[Op, ...] | list[Op]) -> None:
        """Initializes the term.

        Args:
            coefficient: Prefactor of the product.
            ops: Operators of the product.
        """
        object.__setattr__(self, "coefficient", coefficient)
        object.__setattr__(self, "ops", tuple(ops))

    def __setattr__(self, key: str, value: object) -> None:
        """Term objects are immutable.

        Raises:
            AttributeError: Always.
        """
        msg = "Term is immutable."
        raise AttributeError(msg)

    def scaled(self, factor: complex) -> Term:
        """Multiply the coefficient.

        Returns:
            A new term with coefficient ``factor * coefficient``.
        """
        return Term(factor * self.coefficient, self.ops)

    def __neg__(self) -> Term:
        """Negated term.

        Returns:
            The term with flipped coefficient sign.
        """
        return self.scaled(-1)

    def content_key(self) -> tuple[tuple[Any, ...], ...]:
        """Key of the operator content, ignoring the coefficient.

        Returns:
            Tuple of operator sort keys.
        """
        return tuple(op.sort_key() for op in self.ops)

    @property
    def sites(self) -> list[int]:
        """Sites of the operators in product order."""
        return [op.site for op in self.ops]

    def __len__(self) -> int:
        """Number of operators in the product.

        Returns:
            The length of the product.
        """
        return len(self.ops)

    def __eq__(self, other: object) -> bool:
        """Value equality of coefficient and content.

        Returns:
            True if both coefficient and operators agree.
        """
        if not isinstance(other, Term):
            return NotImplemented
        return self.coefficient == other.coefficient and self.ops == other.ops

    def __hash__(self) -> int:
        """Hash consistent with equality.

        Returns:
            The hash of coefficient and operators.
        """
        return hash((self.coefficient, self.ops))

    def __repr__(self) -> str:
        """Readable form such as ``0.5 S+(0) S-(1)``.

        Returns:
            Coefficient followed by the operators.
        """
        ops = " ".join(repr(op) for op in self.ops)
        return f"{self.coefficient} {ops}".rstrip()

    @classmethod
    def from_tuple(cls, spec: tuple[Any, ...]) -> Term:
        """Parse a term written as a flat tuple.

        The tuple reads ``(coef?, name_1, site_1, params_1?, name_2, site_2, params_2?, ...)``: an optional
        leading number is the coefficient and every operator may be followed by a dictionary of parameters.

        Args:
            spec: Flat description of the term.

        Returns:
            The parsed term.

        Raises:
            ValueError: If the tuple is malformed.
        """
        items = list(spec)
        coefficient: complex = 1.0
        if items and isinstance(items[0], numbers.Number) and not isinstance(items[0], bool):
            coefficient = items.pop(0)
        ops: list[Op] = []
        i = 0
        while i < len(items):
            name = items[i]
            if not isinstance(name, (str, np.ndarray)):
                msg = f"Expected an operator name at position {i} of {spec!r}, got {name!r}."
                raise ValueError(msg)
            if i + 1 >= len(items):
                msg = f"Operator {name!r} in {spec!r} is missing its site."
                raise ValueError(msg)
            site = items[i + 1]
            i += 2
            params: dict[str, Any] | None = None
            if i < len(items) and isinstance(items[i], dict):
                params = items[i]
                i += 1
            ops.append(Op(name, site, params))
        if not ops:
            msg = f"Term {spec!r} contains no operators."
            raise ValueError(msg)
        return cls(coefficient, ops)


def as_term(obj: Term | Op | tuple[Any, ...]) -> Term:
    """Normalize supported term inputs into a ``Term``.

    Returns:
        The normalized term.

    Raises:
        TypeError: For unsupported input types.
    """
    if isinstance(obj, Term):
        return obj
    if isinstance(obj, Op):
        return Term(1.0, (obj,))
    if isinstance(obj, tuple):
        return Term.from_tuple(obj)
    msg = f"Cannot build a term from {type(obj).__name__}."
    raise TypeError(msg)


class OpSum:
    """Sum of operator terms.

    Terms are kept in insertion order; duplicates are only merged by the MPO compiler.
    """

    def __init__(self, terms: list[Term] | None = None) -> None:
        """Initializes the operator sum.

        Args:
            terms: Optional initial terms.
        """
        self._terms: list[Term] = []
        for term in terms or []:
            self.add_term(term)

    def add_term(self, *args: Any) -> OpSum:  # noqa: ANN401
        """Append a term.

        Accepts a ``Term``, an ``Op``, a flat tuple, or the tuple items directly:
        ``os.add_term(0.5, "S+", 0, "S-", 1)``.

        Returns:
            This operator sum.
        """
        obj = args[0] if len(args) == 1 and not isinstance(args[0], str) else tuple(args)
        self._terms.append(as_term(obj))
        return self

    add = add_term

    def subtract_term(self, *args: Any) -> OpSum:  # noqa: ANN401
        """Append the negative of a term.

        Returns:
            This operator sum.
        """
        obj = args[0] if len(args) == 1 and not isinstance(args[0], str) else tuple(args)
        self._terms.append(-as_term(obj))
        return self

    @property
    def terms(self) -> list[Term]:
        """A copy of the list of terms."""
        return list(self._terms)

    def copy(self) -> OpSum:
        """Shallow copy; terms are immutable so this is a full copy.

        Returns:
            A new operator sum with the same terms.
        """
        return OpSum(self._terms)

    def __len__(self) -> int:
        """Number of terms.

        Returns:
            The term count.
        """
        return len(self._terms)

    def __iter__(self) -> Iterator[Term]:
        """Iterate over the terms.

        Returns:
            An iterator over the terms.
        """
        return iter(list(self._terms))

    def __getitem__(self, index: int) -> Term:
        """Term access.

        Returns:
            The term at the index.
        """
        return self._terms[index]

    def __eq__(self, other: object) -> bool:
        """Termwise equality in order.

        Returns:
            True if both sums hold equal terms in the same order.
        """
        if not isinstance(other, OpSum):
            return NotImplemented
        return self._terms == other._terms

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        """One term per line.

        Returns:
            The readable operator sum.
        """
        body = "\n".join(f"  {t!r}" for t in self._terms)
        return f"OpSum(\n{body}\n)" if body else "OpSum()"
