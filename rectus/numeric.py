"""
Exact numeric tower for RECTUS.

RECTUS - Rewriting Expressions to Canonical Terms Under Simplification

Numeric literals inside an expression are one of six variants:

    Integer(value)                 - arbitrary precision integer
    Rational(num, den)             - reduced fraction, den > 1
    Radical(radicand, index, coef) - coef * radicand^(1/index), fully reduced
    Real(value)                    - bounded-precision decimal approximation
    Constant(name)                 - Pi or ExponentialE
    Special(name)                  - PositiveInfinity, NegativeInfinity, NaN

Arithmetic never raises. Domain errors produce NAN. When two exact values
have no closed-form combination (e.g. Pi + 1) the operation returns None,
meaning "cannot fold": callers keep the symbolic form, exactly like a fold
handler that declines.

Any operand that is a Real makes the result a Real, and an exact result that
needs more significant digits than the context precision is converted to a
Real. Neither conversion is ever undone.
"""

import decimal
import math
import re
from dataclasses import dataclass
from fractions import Fraction
from functools import lru_cache
from typing import Optional, Tuple, Union


# Exact integers wider than this are not kept exact (str() of huge ints is capped)
MAX_EXACT_DIGITS = 4000
MAX_EXACT_BITS = 13000

# Trial-division bound when extracting perfect powers from a radicand
RADICAL_TRIAL_LIMIT = 10000

LOG10_2 = 0.30102999566398120


# ============================================================
# Numeric Variants
# ============================================================

@dataclass(frozen=True)
class Integer:
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Rational:
    num: int
    den: int

    def __str__(self) -> str:
        return f"{self.num}/{self.den}"


@dataclass(frozen=True)
class Radical:
    radicand: int
    index: int
    coef: Fraction = Fraction(1)

    def __str__(self) -> str:
        root = f"sqrt({self.radicand})" if self.index == 2 else f"root({self.radicand}, {self.index})"
        if self.coef == 1:
            return root
        return f"{self.coef}*{root}"


@dataclass(frozen=True)
class Real:
    value: decimal.Decimal

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Constant:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Special:
    name: str

    def __str__(self) -> str:
        return self.name


Numeric = Union[Integer, Rational, Radical, Real, Constant, Special]

ZERO = Integer(0)
ONE = Integer(1)
NEG_ONE = Integer(-1)
PI = Constant("Pi")
E = Constant("ExponentialE")
POS_INF = Special("PositiveInfinity")
NEG_INF = Special("NegativeInfinity")
NAN = Special("NaN")

CONSTANTS = {"Pi": PI, "ExponentialE": E}
SPECIALS = {"PositiveInfinity": POS_INF, "NegativeInfinity": NEG_INF, "NaN": NAN}


# ============================================================
# Decimal Contexts
# ============================================================

@lru_cache(maxsize=32)
def make_context(precision: int = 21, rounding: str = decimal.ROUND_HALF_EVEN) -> decimal.Context:
    """
    Build the decimal context used for Real arithmetic at a given precision.

    Overflow is not trapped: a finite result too large for the exponent range
    becomes a signed decimal infinity.
    """
    return decimal.Context(
        prec=precision,
        rounding=rounding,
        Emax=decimal.MAX_EMAX,
        Emin=decimal.MIN_EMIN,
        traps=[decimal.InvalidOperation, decimal.DivisionByZero],
    )


DEFAULT_CONTEXT = make_context()


def _wider(context: decimal.Context, extra: int = 10) -> decimal.Context:
    return make_context(context.prec + extra, context.rounding)


@lru_cache(maxsize=32)
def _pi_digits(precision: int) -> decimal.Decimal:
    # Series from the decimal module recipes
    with decimal.localcontext(make_context(precision + 2)):
        three = decimal.Decimal(3)
        lasts, t, s, n, na, d, da = 0, three, 3, 1, 0, 0, 24
        while s != lasts:
            lasts = s
            n, na = n + na, na + 8
            d, da = d + da, da + 32
            t = (t * n) / d
            s += t
    return s


# ============================================================
# Constructors
# ============================================================

def _digit_count(n: int) -> int:
    """Number of decimal digits of a positive integer, without str()."""
    d = max(int(n.bit_length() * LOG10_2), 1)
    while 10 ** d <= n:
        d += 1
    while d > 1 and 10 ** (d - 1) > n:
        d -= 1
    return d


def significant_digits(n: int) -> int:
    """Significant decimal digits of an integer (trailing zeros excluded)."""
    n = abs(n)
    if n == 0:
        return 1
    while n % 10 ** 16 == 0:
        n //= 10 ** 16
    while n % 10 == 0:
        n //= 10
    return _digit_count(n)


def from_fraction(f: Fraction) -> Union[Integer, Rational]:
    """Integer when the denominator is 1, reduced Rational otherwise."""
    if f.denominator == 1:
        return Integer(f.numerator)
    return Rational(f.numerator, f.denominator)


def rational(num: int, den: int = 1) -> Numeric:
    """Reduced rational num/den. A zero denominator is NaN."""
    if den == 0:
        return NAN
    return from_fraction(Fraction(num, den))


def real(value: decimal.Decimal, context: Optional[decimal.Context] = None) -> Numeric:
    """Round a decimal to the context precision. Non-finite values become Specials."""
    context = context or DEFAULT_CONTEXT
    if value.is_nan():
        return NAN
    if value.is_infinite():
        return NEG_INF if value.is_signed() else POS_INF
    return Real(context.plus(value))


def from_float(x: float) -> Numeric:
    """Box a binary float using its shortest repr, so 0.1 stays 0.1."""
    if math.isnan(x):
        return NAN
    if math.isinf(x):
        return POS_INF if x > 0 else NEG_INF
    return Real(decimal.Decimal(repr(x)))


def _iroot(n: int, k: int) -> int:
    """Floor of the k-th root of a non-negative integer."""
    if n < 2:
        return n
    if k == 2:
        return math.isqrt(n)
    x = 1 << ((n.bit_length() + k - 1) // k)
    while True:
        y = ((k - 1) * x + n // x ** (k - 1)) // k
        if y >= x:
            return x
        x = y


def _reduce_index(radicand: int, index: int) -> Tuple[int, int]:
    changed = True
    while changed and index > 1:
        changed = False
        for k in range(index, 1, -1):
            if index % k:
                continue
            r = _iroot(radicand, k)
            if r ** k == radicand:
                radicand, index = r, index // k
                changed = True
                break
    return radicand, index


def radical(radicand: int, index: int = 2, coef=1) -> Optional[Numeric]:
    """
    Exact value coef * radicand^(1/index), fully reduced.

    Perfect powers are extracted from the radicand, the index is lowered when
    the radicand is itself a perfect power, and odd roots of negative
    integers move the sign into the coefficient.

    Returns None for even roots of negative integers (no real value).
    """
    coef = Fraction(coef)
    if index < 1:
        return None
    if coef == 0 or radicand == 0:
        return ZERO
    if radicand < 0:
        if index % 2 == 0:
            return None
        radicand, coef = -radicand, -coef

    radicand, index = _reduce_index(radicand, index)
    if index > 1 and radicand > 1:
        outside = 1
        d = 2
        while d <= RADICAL_TRIAL_LIMIT and d ** index <= radicand:
            p = d ** index
            while radicand % p == 0:
                radicand //= p
                outside *= d
            d += 1
        coef *= outside
        radicand, index = _reduce_index(radicand, index)

    if index == 1 or radicand == 1:
        return from_fraction(coef * radicand)
    return Radical(radicand, index, coef)


_NUMBER_RE = re.compile(r'^([+-]?)(\d+)(?:\.(\d*))?(?:[eE]([+-]?\d+))?$')


def parse_number(text: str) -> Numeric:
    """
    Parse the digit string of a {num: "..."} literal.

    Integers (including exponent forms like "1e999") stay exact; anything
    with a decimal point is a Real. Unparseable text is NaN.
    """
    s = text.strip().replace('_', '')
    if s.endswith('n'):
        s = s[:-1]
    lowered = s.lower()
    if lowered in ('nan', '+nan', '-nan'):
        return NAN
    if lowered in ('infinity', '+infinity', 'inf', '+inf'):
        return POS_INF
    if lowered in ('-infinity', '-inf'):
        return NEG_INF

    m = _NUMBER_RE.match(s)
    if not m:
        return NAN
    sign, whole, fraction, exponent = m.groups()
    exp = int(exponent) if exponent else 0
    if fraction is None and exp >= 0 and len(whole) + exp <= MAX_EXACT_DIGITS:
        value = int(whole) * 10 ** exp
        return Integer(-value if sign == '-' else value)
    return Real(decimal.Decimal(s))


# ============================================================
# Classification
# ============================================================

def is_nan(v: Numeric) -> bool:
    return v == NAN


def is_infinite(v: Numeric) -> bool:
    return v == POS_INF or v == NEG_INF


def is_finite(v: Numeric) -> bool:
    return not isinstance(v, Special)


def is_exact(v: Numeric) -> bool:
    """Integer, Rational, Radical and Constant values carry no approximation."""
    return isinstance(v, (Integer, Rational, Radical, Constant))


def is_zero(v: Numeric) -> bool:
    """Exact zero or a Real zero."""
    if isinstance(v, Integer):
        return v.value == 0
    if isinstance(v, Real):
        return v.value.is_zero()
    return False


def is_one(v: Numeric) -> bool:
    """Exact integer one."""
    return isinstance(v, Integer) and v.value == 1


def is_coefficient(v: Numeric) -> bool:
    """Values that act as a numeric coefficient of a term."""
    return isinstance(v, (Integer, Rational, Real, Radical))


def as_fraction(v: Numeric) -> Optional[Fraction]:
    if isinstance(v, Integer):
        return Fraction(v.value)
    if isinstance(v, Rational):
        return Fraction(v.num, v.den)
    return None


def sign(v: Numeric) -> Optional[int]:
    """-1, 0 or 1; None for NaN."""
    if isinstance(v, Integer):
        return (v.value > 0) - (v.value < 0)
    if isinstance(v, Rational):
        return (v.num > 0) - (v.num < 0)
    if isinstance(v, Radical):
        return (v.coef > 0) - (v.coef < 0)
    if isinstance(v, Real):
        if v.value.is_zero():
            return 0
        return -1 if v.value.is_signed() else 1
    if isinstance(v, Constant):
        return 1
    if v == POS_INF:
        return 1
    if v == NEG_INF:
        return -1
    return None


# ============================================================
# Conversion
# ============================================================

def to_decimal(v: Numeric, context: Optional[decimal.Context] = None) -> Optional[decimal.Decimal]:
    """
    Decimal approximation of a value at the context precision.

    Returns None for NaN.
    """
    context = context or DEFAULT_CONTEXT
    if isinstance(v, Integer):
        return context.create_decimal(v.value)
    if isinstance(v, Rational):
        return context.divide(decimal.Decimal(v.num), decimal.Decimal(v.den))
    if isinstance(v, Real):
        return v.value
    if isinstance(v, Radical):
        wide = _wider(context)
        base = decimal.Decimal(v.radicand)
        if v.index == 2:
            root = wide.sqrt(base)
        else:
            root = wide.power(base, wide.divide(decimal.Decimal(1), decimal.Decimal(v.index)))
        coef = wide.divide(decimal.Decimal(v.coef.numerator), decimal.Decimal(v.coef.denominator))
        return context.plus(wide.multiply(root, coef))
    if isinstance(v, Constant):
        if v == PI:
            return context.plus(_pi_digits(context.prec))
        return context.exp(decimal.Decimal(1))
    if v == POS_INF:
        return decimal.Decimal('Infinity')
    if v == NEG_INF:
        return decimal.Decimal('-Infinity')
    return None


def _settle(f: Fraction, context: decimal.Context) -> Numeric:
    """Exact result, unless it needs more digits than the context allows."""
    num, den = f.numerator, f.denominator
    too_wide = (
        _digit_count(abs(num) or 1) > MAX_EXACT_DIGITS
        or _digit_count(den) > MAX_EXACT_DIGITS
        or max(significant_digits(num), significant_digits(den)) > context.prec
    )
    if too_wide:
        return real(context.divide(decimal.Decimal(num), decimal.Decimal(den)), context)
    return from_fraction(f)


_FRACTION_OPS = {
    "add": lambda x, y: x + y,
    "multiply": lambda x, y: x * y,
    "divide": lambda x, y: x / y,
}


def _exact_fraction(v: Numeric) -> Optional[Fraction]:
    """Exact value of a rational or a Real of moderate exponent."""
    if isinstance(v, Real):
        d = v.value
        if d.is_finite() and abs(d.adjusted()) <= MAX_EXACT_DIGITS:
            return Fraction(d)
        return None
    return as_fraction(v)


def _decimal_op(name: str, a: Numeric, b: Numeric, context: decimal.Context) -> Optional[Numeric]:
    """
    Real arithmetic rounded once to the context precision.

    Rational and Real operands are combined exactly and the quotient rounded;
    other operands are approximated with guard digits first.
    """
    fa, fb = _exact_fraction(a), _exact_fraction(b)
    if fa is not None and fb is not None:
        if name == "divide" and fb == 0:
            return NAN
        f = _FRACTION_OPS[name](fa, fb)
        return real(context.divide(decimal.Decimal(f.numerator), decimal.Decimal(f.denominator)), context)

    wide = _wider(context)
    da, db = to_decimal(a, wide), to_decimal(b, wide)
    if da is None or db is None:
        return NAN
    try:
        return real(getattr(context, name)(da, db), context)
    except (decimal.InvalidOperation, decimal.DivisionByZero):
        return NAN


# ============================================================
# Arithmetic
# ============================================================

def add(a: Numeric, b: Numeric, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    """Sum of two values, following extended-real rules for infinities."""
    context = context or DEFAULT_CONTEXT
    if is_nan(a) or is_nan(b):
        return NAN
    if isinstance(a, Special) or isinstance(b, Special):
        if isinstance(a, Special) and isinstance(b, Special):
            return a if a == b else NAN
        return a if isinstance(a, Special) else b
    if isinstance(a, Integer) and a.value == 0:
        return b
    if isinstance(b, Integer) and b.value == 0:
        return a
    if isinstance(a, Real) or isinstance(b, Real):
        return _decimal_op("add", a, b, context)

    fa, fb = as_fraction(a), as_fraction(b)
    if fa is not None and fb is not None:
        return _settle(fa + fb, context)
    if isinstance(a, Radical) and isinstance(b, Radical):
        if (a.radicand, a.index) == (b.radicand, b.index):
            return radical(a.radicand, a.index, a.coef + b.coef)
    return None


def multiply(a: Numeric, b: Numeric, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    """Product of two values. Zero times an infinity is NaN."""
    context = context or DEFAULT_CONTEXT
    if is_nan(a) or is_nan(b):
        return NAN
    if isinstance(a, Special) or isinstance(b, Special):
        sa, sb = sign(a), sign(b)
        if not sa or not sb:
            return NAN
        return POS_INF if sa * sb > 0 else NEG_INF
    if is_zero(a) or is_zero(b):
        if isinstance(a, Real) or isinstance(b, Real):
            return Real(decimal.Decimal(0))
        return ZERO
    if is_one(a):
        return b
    if is_one(b):
        return a
    if isinstance(a, Real) or isinstance(b, Real):
        return _decimal_op("multiply", a, b, context)

    fa, fb = as_fraction(a), as_fraction(b)
    if fa is not None and fb is not None:
        return _settle(fa * fb, context)
    if isinstance(a, Radical) and fb is not None:
        return radical(a.radicand, a.index, a.coef * fb)
    if isinstance(b, Radical) and fa is not None:
        return radical(b.radicand, b.index, b.coef * fa)
    if isinstance(a, Radical) and isinstance(b, Radical) and a.index == b.index:
        return radical(a.radicand * b.radicand, a.index, a.coef * b.coef)
    return None


def negate(a: Numeric, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    return multiply(NEG_ONE, a, context)


def subtract(a: Numeric, b: Numeric, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    nb = negate(b, context)
    if nb is None:
        return None
    return add(a, nb, context)


def reciprocal(a: Numeric, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    """1/a. The reciprocal of zero is NaN and of an infinity is zero."""
    context = context or DEFAULT_CONTEXT
    if is_nan(a) or is_zero(a):
        return NAN
    if is_infinite(a):
        return ZERO
    if isinstance(a, Real):
        return _decimal_op("divide", ONE, a, context)
    f = as_fraction(a)
    if f is not None:
        return _settle(1 / f, context)
    if isinstance(a, Radical):
        r, n = a.radicand, a.index
        return radical(r ** (n - 1), n, 1 / (a.coef * r))
    return None


def divide(a: Numeric, b: Numeric, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    """Quotient a/b. Division by zero is NaN, as is an infinity over an infinity."""
    context = context or DEFAULT_CONTEXT
    if is_nan(a) or is_nan(b) or is_zero(b):
        return NAN
    if is_infinite(a) and is_infinite(b):
        return NAN
    if is_infinite(a):
        s = sign(b)
        if not s:
            return NAN
        return a if s > 0 else negate(a, context)
    if is_infinite(b):
        return ZERO
    if isinstance(a, Real) or isinstance(b, Real):
        return _decimal_op("divide", a, b, context)
    inv = reciprocal(b, context)
    if inv is None:
        return None
    return multiply(a, inv, context)


def absolute(a: Numeric, context: Optional[decimal.Context] = None) -> Numeric:
    if isinstance(a, Integer):
        return Integer(abs(a.value))
    if isinstance(a, Rational):
        return Rational(abs(a.num), a.den)
    if isinstance(a, Radical):
        return Radical(a.radicand, a.index, abs(a.coef))
    if isinstance(a, Real):
        return Real(a.value.copy_abs())
    if is_infinite(a):
        return POS_INF
    return a


def compare(a: Numeric, b: Numeric, context: Optional[decimal.Context] = None) -> Optional[int]:
    """
    Three-way comparison: -1, 0 or 1.

    NaN is incomparable, including with itself, so None is returned.
    """
    context = context or DEFAULT_CONTEXT
    if is_nan(a) or is_nan(b):
        return None
    fa, fb = as_fraction(a), as_fraction(b)
    if fa is not None and fb is not None:
        return (fa > fb) - (fa < fb)
    if a == b:
        return 0
    wide = _wider(context)
    da, db = to_decimal(a, wide), to_decimal(b, wide)
    return (da > db) - (da < db)


# ============================================================
# Powers
# ============================================================

def _magnitude_vs_one(v: Numeric, context: decimal.Context) -> Optional[int]:
    return compare(absolute(v, context), ONE, context)


def _power_infinite_exponent(base: Numeric, positive: bool, context: decimal.Context) -> Numeric:
    if isinstance(base, Special):
        return POS_INF if positive else ZERO
    if is_zero(base):
        return ZERO if positive else NAN
    magnitude = _magnitude_vs_one(base, context)
    if magnitude == 0 or magnitude is None:
        return NAN
    if (magnitude > 0) == positive:
        return POS_INF
    return ZERO


def _power_infinite_base(base: Numeric, exp: Numeric) -> Numeric:
    s = sign(exp)
    if s is None or s == 0:
        return NAN
    if s < 0:
        return ZERO
    if base == POS_INF:
        return POS_INF
    f = as_fraction(exp)
    if f is None and isinstance(exp, Real) and exp.value == exp.value.to_integral_value():
        f = Fraction(int(exp.value))
    if f is None or f.denominator % 2 == 0:
        return NAN
    return POS_INF if f.numerator % 2 == 0 else NEG_INF


def _decimal_power(base: Numeric, exp: Numeric, context: decimal.Context) -> Optional[Numeric]:
    db, de = to_decimal(base, context), to_decimal(exp, context)
    if db is None or de is None:
        return NAN
    if db < 0 and de != de.to_integral_value():
        return None
    try:
        return real(context.power(db, de), context)
    except (decimal.InvalidOperation, decimal.DivisionByZero):
        return NAN


def _too_wide(v: Numeric, n: int) -> bool:
    f = as_fraction(v)
    if f is not None:
        bits = max(f.numerator.bit_length(), f.denominator.bit_length())
    elif isinstance(v, Radical):
        bits = max(v.radicand.bit_length(), v.coef.numerator.bit_length(), v.coef.denominator.bit_length())
    else:
        return False
    return bits * abs(n) > MAX_EXACT_BITS


def _integer_power(base: Numeric, n: int, context: decimal.Context) -> Optional[Numeric]:
    if isinstance(base, Constant):
        return None
    if n < 0:
        inv = reciprocal(base, context)
        if inv is None or is_nan(inv):
            return inv
        return _integer_power(inv, -n, context)
    if _too_wide(base, n):
        return _decimal_power(base, Integer(n), context)
    f = as_fraction(base)
    if f is not None:
        return _settle(f ** n, context)
    if isinstance(base, Radical):
        q, m = divmod(n, base.index)
        return radical(base.radicand ** m, base.index, base.coef ** n * base.radicand ** q)
    return None


def _rational_power(base: Numeric, exp: Fraction, context: decimal.Context) -> Optional[Numeric]:
    p, q = exp.numerator, exp.denominator
    f = as_fraction(base)
    if f is None:
        return None
    if f < 0:
        if q % 2 == 0:
            return None
        magnitude = _rational_power(from_fraction(-f), exp, context)
        if magnitude is None or p % 2 == 0:
            return magnitude
        return negate(magnitude, context)

    powered = _integer_power(from_fraction(f), p, context)
    g = as_fraction(powered) if powered is not None else None
    if g is None:
        return _decimal_power(base, from_fraction(exp), context)
    a, b = g.numerator, g.denominator
    if (a * b ** (q - 1)).bit_length() > MAX_EXACT_BITS:
        return _decimal_power(base, from_fraction(exp), context)
    return radical(a * b ** (q - 1), q, Fraction(1, b))


def power(base: Numeric, exp: Numeric, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    """
    base raised to exp.

    Exact bases with rational exponents produce exact radicals where a real
    root exists; 0^0, 0^negative, 1^(+/-inf) and inf^0 are NaN. Bases
    without a closed form (e.g. Pi^2) return None.
    """
    context = context or DEFAULT_CONTEXT
    if is_nan(base) or is_nan(exp):
        return NAN
    if is_infinite(exp):
        return _power_infinite_exponent(base, exp == POS_INF, context)
    if is_infinite(base):
        return _power_infinite_base(base, exp)

    es = sign(exp)
    involves_real = isinstance(base, Real) or isinstance(exp, Real)
    if is_zero(base):
        if es is None or es <= 0:
            return NAN
        return base
    if es == 0:
        return Real(decimal.Decimal(1)) if involves_real else ONE
    if is_one(exp):
        return base
    if is_one(base):
        return Real(decimal.Decimal(1)) if involves_real else ONE
    if involves_real:
        return _decimal_power(base, exp, context)

    fe = as_fraction(exp)
    if fe is None:
        return None
    if fe.denominator == 1:
        return _integer_power(base, fe.numerator, context)
    if isinstance(base, Radical):
        return None
    return _rational_power(base, fe, context)


def root(base: Numeric, index: int, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    """The index-th root of a value."""
    if index == 0:
        return NAN
    return power(base, rational(1, index), context)


# ============================================================
# Elementary Functions
# ============================================================

def ln(v: Numeric, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    """
    Natural logarithm where it folds: ln(1) = 0, ln(0) = NaN, ln(e) = 1,
    ln(+inf) = +inf, and Real arguments. Other exact values stay symbolic.
    """
    context = context or DEFAULT_CONTEXT
    if is_nan(v) or v == NEG_INF:
        return NAN
    if v == POS_INF:
        return POS_INF
    if is_zero(v):
        return NAN
    if is_one(v):
        return ZERO
    if v == E:
        return ONE
    if isinstance(v, Real):
        if v.value < 0:
            return NAN
        return real(context.ln(v.value), context)
    return None


def _exact_log(v: Fraction, base: int) -> Optional[int]:
    if base < 2 or v <= 0:
        return None
    if v.denominator == 1:
        n, direction = v.numerator, 1
    elif v.numerator == 1:
        n, direction = v.denominator, -1
    else:
        return None
    k = 0
    while n > 1 and n % base == 0:
        n //= base
        k += 1
    if n != 1:
        return None
    return direction * k


def log(v: Numeric, base: Numeric, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    """Logarithm of v in the given base, where it folds."""
    context = context or DEFAULT_CONTEXT
    if is_nan(v) or is_nan(base):
        return NAN
    if v == POS_INF:
        if isinstance(base, Special):
            return NAN
        if sign(base) != 1:
            return None
        side = compare(base, ONE, context)
        if side == 0:
            return NAN
        return POS_INF if side > 0 else NEG_INF
    if is_zero(v):
        return NAN
    if is_one(v):
        return ZERO
    if v == base:
        return ONE
    if isinstance(v, Real) or isinstance(base, Real):
        dv, db = to_decimal(v, context), to_decimal(base, context)
        if dv is None or db is None or dv <= 0 or db <= 0 or db == 1:
            return NAN
        return real(context.divide(context.ln(dv), context.ln(db)), context)
    fv, fb = as_fraction(v), as_fraction(base)
    if fv is not None and fb is not None and fb.denominator == 1:
        k = _exact_log(fv, fb.numerator)
        if k is not None:
            return Integer(k)
    return None


def evaluate_float(func, v: Numeric, context: Optional[decimal.Context] = None) -> Optional[Numeric]:
    """
    Apply a float function from the math module to a Real argument.

    Used for transcendental functions the decimal module does not provide;
    the result carries float precision only.
    """
    context = context or DEFAULT_CONTEXT
    if not isinstance(v, Real):
        return None
    try:
        result = func(float(v.value))
    except ValueError:
        return NAN
    except (OverflowError, ZeroDivisionError):
        return None
    return real(decimal.Decimal(repr(result)), context)
