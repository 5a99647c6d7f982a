"""
The default rule catalogue for RECTUS.

Rules are grouped by tag so that whole families can be switched off on an
engine (engine.disable_group("logarithms")):

    arithmetic  - like terms, power combination, coefficient distribution,
                  common denominators
    distribute  - full expansion, kept only when terms cancel
    powers      - double powers and powers of products
    abs         - absolute value identities
    trig        - even/odd function parity
    logarithms  - log/exp inverses, log of powers and products, change of base
    relational  - comparison of identical sides, common content

Ordering matters: within a head, higher priority fires first. Like-term
collection runs before structural identities, and distribution and common
denominators run last, so cheaper rewrites get the first chance.

Every rewrite here keeps the value of the expression on the domain where
the original is defined, and no rewrite widens that domain: x/x, x^2/x
and sqrt(x)*sqrt(x) stay as they are.
"""

from fractions import Fraction
from math import gcd
from typing import List, Optional, Tuple

from . import numeric
from .canonical import (
    make_abs, make_add, make_log, make_multiply, make_negate, make_power,
    make_ln,
)
from .config import EngineConfig
from .expr import Expr, Num, Apply, EXP_E, is_literal
from .rules import RuleBook
from .terms import (
    base_exponent, collect, expand, expandable, factors, is_nonzero,
    is_positive, literal_fraction, literal_sign, split_coefficient, sum_of,
    summands, with_coefficient,
)

RULES = RuleBook()

EVEN_FUNCTIONS = ("Cos", "Sec", "Cosh", "Sech")
ODD_FUNCTIONS = ("Sin", "Tan", "Cot", "Csc", "Arcsin", "Arctan", "Sinh", "Tanh", "Coth", "Csch")
RELATION_HEADS = ("Equal", "NotEqual", "Less", "LessEqual", "Greater", "GreaterEqual")


# ============================================================
# Declarative Rules
# ============================================================

RULES.load_dsl('''
[abs]
@abs-abs[10] "The absolute value is idempotent": (Abs (Abs ?x)) => (Abs :x)
@abs-power "Absolute value of an odd-root power": (Abs (Power ?x ?n:const)) => (Power (Abs :x) :n) when (! odd-denominator? :n)
@abs-even-power "An even power absorbs the absolute value": (Power (Abs ?x) ?n:const) => (Power :x :n) when (! even-numerator? :n)

[relational]
@equal-same "A value equals itself": (Equal ?x ?x) => True
@not-equal-same: (NotEqual ?x ?x) => False
@less-same: (Less ?x ?x) => False
@greater-same: (Greater ?x ?x) => False
@less-equal-same: (LessEqual ?x ?x) => True
@greater-equal-same: (GreaterEqual ?x ?x) => True
''')


def _parity_dsl() -> str:
    lines = ["[trig]"]
    for f in EVEN_FUNCTIONS:
        name = f.lower()
        lines.append(f'@{name}-abs "{f} is even": ({f} (Abs ?x)) => ({f} :x)')
        lines.append(f'@{name}-negated: ({f} (Multiply ?c:const ?xs...)) => '
                     f'({f} (Multiply (! Negate :c) :xs...)) when (! negative? :c)')
    for f in ODD_FUNCTIONS:
        name = f.lower()
        lines.append(f'@abs-{name} "{f} is odd": (Abs ({f} ?x)) => ({f} (Abs :x))')
        lines.append(f'@{name}-negated: ({f} (Multiply ?c:const ?xs...)) => '
                     f'(Negate ({f} (Multiply (! Negate :c) :xs...))) when (! negative? :c)')
    return "\n".join(lines)


RULES.load_dsl(_parity_dsl())


# ============================================================
# Arithmetic
# ============================================================

@RULES.rule("(Add ?terms...)", name="like-terms", group="arithmetic", priority=50)
def like_terms(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """Combine terms that differ only by a numeric coefficient"""
    context = config.decimal_context()
    grouped = {}
    for t in bindings["terms"]:
        coef, rest = split_coefficient(t)
        grouped.setdefault(rest, []).append(coef)
    if all(len(coefs) == 1 for coefs in grouped.values()):
        return None

    out = []
    changed = False
    for rest, coefs in grouped.items():
        total = coefs[0]
        for c in coefs[1:]:
            total = numeric.add(total, c, context)
            if total is None:
                break
        if total is None or len(coefs) == 1:
            out.extend(with_coefficient(c, rest, config) for c in coefs)
            continue
        changed = True
        out.append(with_coefficient(total, rest, config))
    return make_add(out, config) if changed else None


def _exponent_total(exps: List[Expr], config: EngineConfig) -> Expr:
    context = config.decimal_context()
    if all(isinstance(e, Num) for e in exps):
        total = exps[0].value
        for e in exps[1:]:
            total = numeric.add(total, e.value, context)
            if total is None:
                break
        if total is not None:
            return Num(total)
    return make_add(exps, config)


def _may_combine(base: Expr, exps: List[Expr], total: Expr, config: EngineConfig) -> bool:
    """
    Whether x^a * x^b -> x^(a+b) keeps the domain of the product.

    A negative exponent cancelled into a non-negative total would hide a
    division by zero, and an even-denominator exponent merged into an
    odd-denominator total would hide a square root of a negative number.
    """
    if is_positive(base, config):
        return True
    signs = [literal_sign(e, config) for e in exps]
    total_sign = literal_sign(total, config)
    if None in signs or total_sign is None:
        return False
    if not is_nonzero(base, config):
        if any(s < 0 for s in signs) and total_sign >= 0:
            return False
    fractions = [literal_fraction(e) for e in exps]
    total_fraction = literal_fraction(total)
    if any(f is not None and f.denominator % 2 == 0 for f in fractions):
        if total_fraction is None or total_fraction.denominator % 2 == 1:
            return False
    return True


@RULES.rule("(Multiply ?factors...)", name="combine-powers", group="arithmetic", priority=40)
def combine_powers(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """Add the exponents of factors with a common base"""
    coefficients = []
    grouped = {}
    for f in bindings["factors"]:
        if isinstance(f, Num) and numeric.is_coefficient(f.value):
            coefficients.append(f)
            continue
        base, exp = base_exponent(f)
        grouped.setdefault(base, []).append(exp)

    changed = False
    out = list(coefficients)
    for item, exps in grouped.items():
        if len(exps) > 1:
            total = _exponent_total(exps, config)
            if _may_combine(item, exps, total, config):
                out.append(make_power(item, total, config))
                changed = True
                continue
        out.extend(make_power(item, e, config) for e in exps)
    return make_multiply(out, config) if changed else None


@RULES.rule("(Multiply ?c:const (Add ?terms...))", name="distribute-coefficient",
            group="arithmetic", priority=30)
def distribute_coefficient(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """Distribute a numeric coefficient over a sum"""
    c = bindings["c"]
    if not numeric.is_coefficient(c.value):
        return None
    return make_add([make_multiply([c, t], config) for t in bindings["terms"]], config)


def _denominator(term: Expr) -> Tuple[List[Expr], List[Tuple[Expr, int]]]:
    """Split a term into numerator factors and (base, n) for factors base^(-n)."""
    numer, denom = [], []
    for f in factors(term):
        base, exp = base_exponent(f)
        q = literal_fraction(exp)
        if f is not base and q is not None and q.denominator == 1 and q < 0 and not isinstance(base, Num):
            denom.append((base, -q.numerator))
        else:
            numer.append(f)
    return numer, denom


@RULES.rule("(Add ?terms...)", name="common-denominator", group="arithmetic", priority=20)
def common_denominator(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """Bring fractions over a common denominator when they share one or their numerators cancel"""
    fractions, others = [], []
    for t in bindings["terms"]:
        numer, denom = _denominator(t)
        if denom:
            fractions.append((numer, denom))
        else:
            others.append(t)
    if len(fractions) < 2:
        return None

    common = {}
    for _, denom in fractions:
        for base, n in denom:
            common[base] = max(common.get(base, 0), n)
    shared = all(dict(denom) == common for _, denom in fractions)

    numerators = []
    for numer, denom in fractions:
        own = dict(denom)
        missing = [make_power(base, Num(numeric.Integer(n - own.get(base, 0))), config)
                   for base, n in common.items() if n > own.get(base, 0)]
        numerators.append(make_multiply(numer + missing, config))

    monomials = expand(make_add(numerators, config), config)
    if monomials is not None:
        collected = collect(monomials, config)
        if len(collected) < len(fractions) or shared:
            numerator = sum_of(collected, config)
        else:
            return None
    elif shared:
        numerator = make_add(numerators, config)
    else:
        return None

    denominator = [make_power(base, Num(numeric.Integer(-n)), config) for base, n in common.items()]
    combined = make_multiply([numerator] + denominator, config)
    return make_add(others + [combined], config)


@RULES.rule("(Add ?terms...)", name="distribute", group="distribute", priority=10)
def distribute(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """Expand products of sums when the expansion cancels terms"""
    if not any(expandable(t, config) for t in bindings["terms"]):
        return None
    monomials = expand(expr, config)
    if monomials is None:
        return None
    collected = collect(monomials, config)
    if len(collected) >= len(monomials):
        return None
    return sum_of(collected, config)


# ============================================================
# Powers
# ============================================================

@RULES.rule("(Power (Power ?x ?a) ?b)", name="power-of-power", group="powers", priority=40)
def power_of_power(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """Multiply the exponents of a double power where parity allows"""
    x, a, b = bindings["x"], bindings["a"], bindings["b"]
    if is_positive(x, config):
        return make_power(x, make_multiply([a, b], config), config)
    if not (isinstance(a, Num) and isinstance(b, Num)):
        return None

    product = numeric.multiply(a.value, b.value, config.decimal_context())
    sa, sb = numeric.sign(a.value), numeric.sign(b.value)
    if product is None or numeric.is_nan(product) or sa is None or sb is None:
        return None
    if sa < 0 and sb < 0 and not is_nonzero(x, config):
        return None

    fa, fb, fp = (numeric.as_fraction(v) for v in (a.value, b.value, product))
    if fa is not None and fp is not None:
        if fa.numerator % 2 == 0 and fp.numerator % 2 == 1:
            return make_power(make_abs(x, config), Num(product), config)
        if fa.denominator % 2 == 0 and fp.denominator % 2 == 1:
            return None
        return make_power(x, Num(product), config)
    if fb is not None and fb.denominator == 1:
        return make_power(x, Num(product), config)
    return None


@RULES.rule("(Power (Multiply ?fs...) ?n:const)", name="power-of-product", group="powers", priority=30)
def power_of_product(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """Distribute an integer power over a product"""
    n = bindings["n"]
    q = literal_fraction(n)
    if q is None or q.denominator != 1:
        return None
    out = []
    for f in bindings["fs"]:
        base, exp = base_exponent(f)
        if q < 0 and literal_sign(exp, config) == -1 and not is_nonzero(base, config):
            return None
        out.append(make_power(f, n, config))
    return make_multiply(out, config)


# ============================================================
# Absolute Value
# ============================================================

@RULES.rule("(Abs (Multiply ?fs...))", name="abs-product", group="abs", priority=20)
def abs_product(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """Pull literal and positive factors out of an absolute value"""
    inside, outside = [], []
    for f in bindings["fs"]:
        if isinstance(f, Num) and numeric.is_finite(f.value):
            outside.append(make_abs(f, config))
        elif is_positive(f, config):
            outside.append(f)
        else:
            inside.append(f)
    if not outside:
        return None
    return make_multiply(outside + [make_abs(make_multiply(inside, config), config)], config)


# ============================================================
# Logarithms
# ============================================================

def is_log(node: Expr) -> bool:
    if not isinstance(node, Apply):
        return False
    return (node.head == "Ln" and len(node.args) == 1) or (node.head == "Log" and len(node.args) == 2)


def log_parts(node: Expr) -> Tuple[Expr, Expr]:
    """(argument, base) of a Ln or Log node."""
    if node.head == "Ln":
        return node.args[0], EXP_E
    return node.args[0], node.args[1]


def _log_of_power(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    arg, base = log_parts(expr)
    x, n = arg.args
    if x == base:
        return n
    if not isinstance(n, Num) or not numeric.is_finite(n.value):
        return None
    q = numeric.as_fraction(n.value)
    inner = x
    if not is_positive(x, config) and q is not None and q.numerator % 2 == 0:
        inner = make_abs(x, config)
    return make_multiply([n, make_log(inner, base, config)], config)


def _log_of_product(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    arg, base = log_parts(expr)
    pulled, rest = [], []
    for f in arg.args:
        b, e = base_exponent(f)
        if b == base:
            pulled.append(e)
        else:
            rest.append(f)
    if not pulled:
        return None
    return make_add(pulled + [make_log(make_multiply(rest, config), base, config)], config)


for _pattern, _suffix in (("(Ln (Power ?x ?n))", "ln"), ("(Log (Power ?x ?n) ?b)", "log")):
    RULES.rule(_pattern, name=f"{_suffix}-of-power", group="logarithms", priority=40,
               description="Bring an exponent out of a logarithm")(_log_of_power)
for _pattern, _suffix in (("(Ln (Multiply ?fs...))", "ln"), ("(Log (Multiply ?fs...) ?b)", "log")):
    RULES.rule(_pattern, name=f"{_suffix}-of-product", group="logarithms", priority=30,
               description="Split powers of the base out of a logarithm")(_log_of_product)


def _merge_log_arguments(si: int, a: Expr, sj: int, b: Expr, config: EngineConfig) -> Optional[Tuple[int, Expr]]:
    fa, fb = list(factors(a)), list(factors(b))
    if si != sj:
        pos, neg = (fa, fb) if si > 0 else (fb, fa)
        for big, small, sign in ((pos, neg, 1), (neg, pos, -1)):
            remaining = list(big)
            for f in small:
                if f not in remaining:
                    break
                remaining.remove(f)
            else:
                return sign, make_multiply(remaining, config)
        return None

    exponents = {}
    for f in fa:
        b0, e0 = base_exponent(f)
        exponents[b0] = e0
    for f in fb:
        b0, e0 = base_exponent(f)
        if b0 in exponents and make_negate(e0, config) == exponents[b0]:
            return si, make_multiply(fa + fb, config)
    return None


@RULES.rule("(Add ?terms...)", name="log-combine", group="logarithms", priority=45)
def combine_logs(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """Merge a sum or difference of logarithms whose arguments share factors"""
    terms = list(bindings["terms"])
    logs = []
    for i, t in enumerate(terms):
        coef, rest = split_coefficient(t)
        if is_log(rest) and coef in (numeric.ONE, numeric.NEG_ONE):
            arg, base = log_parts(rest)
            logs.append((i, numeric.sign(coef), arg, base))

    for k, (i, si, arg_i, base_i) in enumerate(logs):
        for j, sj, arg_j, base_j in logs[k + 1:]:
            if base_i != base_j:
                continue
            merged = _merge_log_arguments(si, arg_i, sj, arg_j, config)
            if merged is None:
                continue
            sign, arg = merged
            log = make_log(arg, base_i, config)
            rest = [t for n, t in enumerate(terms) if n not in (i, j)]
            rest.append(log if sign > 0 else make_negate(log, config))
            return make_add(rest, config)
    return None


@RULES.rule("(Power ?c ?e)", name="power-of-log", group="logarithms", priority=50)
def power_of_log(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """c^(k log_c(x)) -> x^k and c^(log_c(x) + r) -> x c^r"""
    c, e = bindings["c"], bindings["e"]

    def log_term(t: Expr):
        coef, rest = split_coefficient(t)
        if is_log(rest):
            arg, base = log_parts(rest)
            if base == c:
                return coef, arg
        return None

    if isinstance(e, Apply) and e.head == "Add":
        for i, t in enumerate(e.args):
            found = log_term(t)
            if found is not None and numeric.is_one(found[0]):
                remainder = make_add(list(e.args[:i] + e.args[i + 1:]), config)
                return make_multiply([found[1], make_power(c, remainder, config)], config)
        return None

    found = log_term(e)
    if found is None:
        return None
    coef, x = found
    return make_power(x, Num(coef), config)


@RULES.rule("(Multiply ?fs...)", name="change-of-base", group="logarithms", priority=35)
def change_of_base(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    """Rewrite quotients of logarithms through natural logarithms"""
    fs = list(bindings["fs"])
    above, below = [], []
    for i, f in enumerate(fs):
        if is_log(f):
            above.append((i, *log_parts(f)))
        else:
            base, exp = base_exponent(f)
            if is_literal(exp, numeric.NEG_ONE) and is_log(base):
                below.append((i, *log_parts(base)))

    for i, a, ca in above:
        for j, b, cb in below:
            if ca == cb and ca != EXP_E:
                fs[i] = make_ln(a, config)
                fs[j] = make_power(make_ln(b, config), Num(numeric.NEG_ONE), config)
            elif cb == EXP_E and ca != EXP_E and a == b:
                fs[i] = make_power(make_ln(ca, config), Num(numeric.NEG_ONE), config)
                fs[j] = Num(numeric.ONE)
            elif ca == EXP_E and cb != EXP_E and a == b:
                fs[i] = make_ln(cb, config)
                fs[j] = Num(numeric.ONE)
            else:
                continue
            return make_multiply(fs, config)
    return None


# ============================================================
# Relations
# ============================================================

def _content(node: Expr) -> Optional[List[Fraction]]:
    out = []
    for t in summands(node):
        coef, _ = split_coefficient(t)
        q = numeric.as_fraction(coef)
        if q is None:
            return None
        if q != 0:
            out.append(abs(q))
    return out


def _divide_content(expr: Expr, bindings, config: EngineConfig) -> Optional[Expr]:
    lhs, rhs = expr.args
    left, right = _content(lhs), _content(rhs)
    if left is None or right is None or not (left or right):
        return None
    coefs = left + right
    num, den = 0, 1
    for q in coefs:
        num = gcd(num, q.numerator)
        den = den * q.denominator // gcd(den, q.denominator)
    content = Fraction(num, den)
    if content == 1:
        return None

    def scaled(side: Expr) -> Expr:
        terms = []
        for t in summands(side):
            coef, rest = split_coefficient(t)
            q = numeric.as_fraction(coef) / content
            terms.append(with_coefficient(numeric.from_fraction(q), rest, config))
        return make_add(terms, config)

    return Apply(expr.head, (scaled(lhs), scaled(rhs)))


for _head in RELATION_HEADS:
    RULES.rule(f"({_head} ?a ?b)", name=f"{_head.lower()}-content", group="relational",
               description="Divide both sides by their common positive content")(_divide_content)


def default_rulebook() -> RuleBook:
    """A fresh copy of the default catalogue."""
    return RULES.copy()
