"""
Term algebra helpers used by the rule catalogue.

A term of a canonical sum splits into a numeric coefficient and a rest:

    3*x*y   -> (3, x*y)
    -x      -> (-1, x)
    Sqrt(2) -> (Sqrt(2), 1)
    Pi*x    -> (1, Pi*x)        constants are bases, not coefficients

Monomials extend this to (coefficient, ((base, exponent), ...)) so that
sums can be expanded and like terms collected. The provability
predicates at the end are deliberately conservative: they answer True
only when the property holds for every real value of the symbols.
"""

import decimal
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from . import numeric
from .canonical import make_add, make_multiply, make_power
from .config import EngineConfig
from .expr import Expr, Num, Apply, ONE


# ============================================================
# Coefficients and Factors
# ============================================================

def split_coefficient(term: Expr, config: Optional[EngineConfig] = None) -> Tuple[numeric.Numeric, Expr]:
    """Split a canonical term into (numeric coefficient, rest)."""
    if isinstance(term, Num) and numeric.is_coefficient(term.value):
        return term.value, ONE
    if isinstance(term, Apply) and term.head == "Multiply":
        lead = term.args[0]
        if isinstance(lead, Num) and numeric.is_coefficient(lead.value):
            rest = term.args[1:]
            if len(rest) == 1:
                return lead.value, rest[0]
            return lead.value, Apply("Multiply", rest)
    return numeric.ONE, term


def with_coefficient(coef: numeric.Numeric, rest: Expr, config: EngineConfig) -> Expr:
    """Inverse of split_coefficient."""
    if rest == ONE:
        return Num(coef)
    return make_multiply([Num(coef), rest], config)


def factors(node: Expr) -> Tuple[Expr, ...]:
    if isinstance(node, Apply) and node.head == "Multiply":
        return node.args
    return (node,)


def summands(node: Expr) -> Tuple[Expr, ...]:
    if isinstance(node, Apply) and node.head == "Add":
        return node.args
    return (node,)


def base_exponent(node: Expr) -> Tuple[Expr, Expr]:
    if isinstance(node, Apply) and node.head == "Power" and len(node.args) == 2:
        return node.args[0], node.args[1]
    return node, ONE


def literal_fraction(node: Expr):
    """The Fraction value of an Integer/Rational literal, else None."""
    if isinstance(node, Num):
        return numeric.as_fraction(node.value)
    return None


def is_positive_integer(node: Expr) -> bool:
    f = literal_fraction(node)
    return f is not None and f.denominator == 1 and f > 0


# ============================================================
# Monomials
# ============================================================

class Monomial:
    """A coefficient times a product of powers, keyed for collection."""

    __slots__ = ("coef", "powers")

    def __init__(self, coef: numeric.Numeric, powers: Tuple[Tuple[Expr, Expr], ...] = ()):
        self.coef = coef
        self.powers = powers

    @classmethod
    def from_term(cls, term: Expr) -> "Monomial":
        coef, rest = split_coefficient(term)
        if rest == ONE:
            return cls(coef)
        return cls(coef, _sorted_powers([base_exponent(f) for f in factors(rest)]))

    def times(self, other: "Monomial", context: decimal.Context) -> Optional["Monomial"]:
        coef = numeric.multiply(self.coef, other.coef, context)
        if coef is None:
            return None
        powers = list(self.powers)
        for base, exp in other.powers:
            for i, (b, e) in enumerate(powers):
                if b == base and is_positive_integer(e) and is_positive_integer(exp):
                    total = literal_fraction(e) + literal_fraction(exp)
                    powers[i] = (b, Num(numeric.Integer(total.numerator)))
                    break
            else:
                powers.append((base, exp))
        return Monomial(coef, _sorted_powers(powers))

    @property
    def key(self) -> Tuple[Tuple[Expr, Expr], ...]:
        return self.powers

    def to_expr(self, config: EngineConfig) -> Expr:
        rest = make_multiply([make_power(b, e, config) for b, e in self.powers], config)
        return with_coefficient(self.coef, rest, config)

    def __repr__(self) -> str:
        return f"Monomial({self.coef}, {self.powers})"


def _sorted_powers(powers: List[Tuple[Expr, Expr]]) -> Tuple[Tuple[Expr, Expr], ...]:
    return tuple(sorted(powers, key=lambda p: (p[0].sort_key, p[1].sort_key)))


def expandable(term: Expr, config: EngineConfig) -> bool:
    """Whether a term has a sum factor (or a small power of one) to distribute."""
    for f in factors(term):
        if isinstance(f, Apply) and f.head == "Add" and isinstance(term, Apply) and term.head == "Multiply":
            return True
        base, exp = base_exponent(f)
        if isinstance(base, Apply) and base.head == "Add" and is_positive_integer(exp):
            if literal_fraction(exp) <= config.max_expand_power:
                return True
    return False


def expand(node: Expr, config: EngineConfig) -> Optional[List[Monomial]]:
    """
    Fully distribute products over sums and small integer powers of sums.

    Returns None when a coefficient product has no closed form or the
    expansion grows past config.max_expand_terms.
    """
    context = config.decimal_context()

    def product(left: List[Monomial], right: List[Monomial]) -> Optional[List[Monomial]]:
        out = []
        for a in left:
            for b in right:
                m = a.times(b, context)
                if m is None:
                    return None
                out.append(m)
        if len(out) > config.max_expand_terms:
            return None
        return out

    if isinstance(node, Apply) and node.head == "Add":
        out: List[Monomial] = []
        for t in node.args:
            part = expand(t, config)
            if part is None:
                return None
            out.extend(part)
        return out

    if isinstance(node, Apply) and node.head == "Multiply":
        result: Optional[List[Monomial]] = [Monomial(numeric.ONE)]
        for f in node.args:
            part = expand(f, config)
            if part is None:
                return None
            result = product(result, part)
            if result is None:
                return None
        return result

    base, exp = base_exponent(node)
    if isinstance(base, Apply) and base.head == "Add" and is_positive_integer(exp):
        n = literal_fraction(exp).numerator
        if n <= config.max_expand_power:
            terms = expand(base, config)
            if terms is None:
                return None
            result = [Monomial(numeric.ONE)]
            for _ in range(n):
                result = product(result, terms)
                if result is None:
                    return None
            return result

    return [Monomial.from_term(node)]


def collect(monomials: List[Monomial], config: EngineConfig) -> List[Monomial]:
    """Sum the coefficients of monomials with equal keys, dropping zeros."""
    context = config.decimal_context()
    grouped: Dict[tuple, List[Monomial]] = OrderedDict()
    for m in monomials:
        grouped.setdefault(m.key, []).append(m)

    out: List[Monomial] = []
    for key, group in grouped.items():
        total = group[0].coef
        for m in group[1:]:
            total = numeric.add(total, m.coef, context)
            if total is None:
                break
        if total is None:
            out.extend(group)
        elif not numeric.is_zero(total):
            out.append(Monomial(total, key))
    return out


def sum_of(monomials: List[Monomial], config: EngineConfig) -> Expr:
    return make_add([m.to_expr(config) for m in monomials], config)


# ============================================================
# Provable Properties
# ============================================================

POSITIVE_FUNCTIONS = frozenset({"Cosh", "Sech"})


def approximate(node: Expr, config: EngineConfig) -> Optional[decimal.Decimal]:
    """Decimal value of a tree built only from literals, or None."""
    context = numeric.make_context(config.precision + 5, config.rounding)
    try:
        return _approximate(node, context)
    except (decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow):
        return None


def _approximate(node: Expr, context: decimal.Context) -> Optional[decimal.Decimal]:
    if isinstance(node, Num):
        d = numeric.to_decimal(node.value, context)
        return d if d is not None and d.is_finite() else None
    if not isinstance(node, Apply):
        return None
    parts = [_approximate(a, context) for a in node.args]
    if any(p is None for p in parts):
        return None
    if node.head == "Add":
        total = decimal.Decimal(0)
        for p in parts:
            total = context.add(total, p)
        return total
    if node.head == "Multiply":
        total = decimal.Decimal(1)
        for p in parts:
            total = context.multiply(total, p)
        return total
    if node.head == "Power" and len(parts) == 2:
        base, exp = parts
        if base > 0 or (base < 0 and exp == exp.to_integral_value()):
            return context.power(base, exp)
        return None
    if node.head == "Ln" and len(parts) == 1 and parts[0] > 0:
        return context.ln(parts[0])
    if node.head == "Abs" and len(parts) == 1:
        return parts[0].copy_abs()
    return None


def literal_sign(node: Expr, config: EngineConfig) -> Optional[int]:
    """Sign of a literal-only tree, or None when it is not known."""
    if isinstance(node, Num):
        return numeric.sign(node.value)
    d = approximate(node, config)
    if d is None:
        return None
    return (d > 0) - (d < 0)


def is_positive(node: Expr, config: EngineConfig) -> bool:
    """True only if node is positive for every real value of its symbols."""
    if isinstance(node, Num):
        return numeric.is_finite(node.value) and numeric.sign(node.value) == 1
    if not isinstance(node, Apply):
        return False
    if node.head in ("Add", "Multiply"):
        return all(is_positive(a, config) for a in node.args)
    if node.head == "Power" and len(node.args) == 2:
        return is_positive(node.args[0], config)
    if node.head in POSITIVE_FUNCTIONS:
        return True
    return literal_sign(node, config) == 1


def is_nonzero(node: Expr, config: EngineConfig) -> bool:
    """True only if node is nonzero for every real value of its symbols."""
    if is_positive(node, config):
        return True
    if isinstance(node, Num):
        return numeric.is_finite(node.value) and numeric.sign(node.value) not in (0, None)
    if not isinstance(node, Apply):
        return False
    if node.head == "Multiply":
        return all(is_nonzero(a, config) for a in node.args)
    if node.head == "Power" and len(node.args) == 2:
        base, exp = node.args
        return is_nonzero(base, config) and isinstance(exp, Num) and numeric.is_finite(exp.value)
    sign = literal_sign(node, config)
    return sign is not None and sign != 0
