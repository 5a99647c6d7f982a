"""
Canonicalizer for RECTUS.

canonicalize() rewrites a boxed expression, bottom-up, into the unique
canonical representative of its structural class:

    - derived heads are desugared: Subtract, Negate, Divide, Sqrt, Root,
      Square, Exp, Lb, Lg and symbolic Rational disappear in favour of
      Add, Multiply, Power and Log
    - Add and Multiply are flattened, their literals folded, their
      identities (0 and 1) dropped and their arguments sorted
    - literal powers, absolute values, logarithms and elementary functions
      at special points are folded
    - NaN propagates through every mathematical head (relations excepted)

Each make_* function below takes canonical arguments and returns a
canonical result, so rules can assemble new canonical trees directly.
Unknown heads are kept as-is, with canonical arguments.
"""

import math
from typing import Callable, Dict, List, Optional, Sequence

from . import numeric
from .config import DEFAULT_CONFIG, EngineConfig
from .expr import (
    Expr, Num, Sym, Apply, ZERO, ONE, NEG_ONE, TWO, HALF, PI, EXP_E, NAN,
    TRUE, FALSE, is_nan, is_literal, symbol,
)


CanonicalHandler = Callable[[Sequence[Expr], EngineConfig], Expr]


# ============================================================
# Literal Folding
# ============================================================

def _fold(values: List[numeric.Numeric], op, context) -> List[numeric.Numeric]:
    """
    Combine values pairwise with op wherever op has a closed form.

    Values that do not combine (op returns None) are kept side by side.
    """
    pending = list(values)
    folded: List[numeric.Numeric] = []
    while pending:
        v = pending.pop(0)
        for i, w in enumerate(folded):
            r = op(w, v, context)
            if r is not None:
                del folded[i]
                pending.insert(0, r)
                break
        else:
            folded.append(v)
    return folded


def _sorted(args: List[Expr]) -> List[Expr]:
    return sorted(args, key=lambda a: a.sort_key)


def _flatten(head: str, args: Sequence[Expr]) -> List[Expr]:
    out: List[Expr] = []
    for a in args:
        if isinstance(a, Apply) and a.head == head:
            out.extend(a.args)
        else:
            out.append(a)
    return out


def _split_literals(args: List[Expr]):
    literals = [a.value for a in args if isinstance(a, Num)]
    others = [a for a in args if not isinstance(a, Num)]
    return sorted(literals, key=lambda v: Num(v).sort_key), others


# ============================================================
# Arithmetic
# ============================================================

def make_add(args: Sequence[Expr], config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    """Canonical sum of canonical terms."""
    terms = _flatten("Add", args)
    literals, others = _split_literals(terms)
    if any(numeric.is_nan(v) for v in literals):
        return NAN

    folded = _fold(literals, numeric.add, config.decimal_context())
    if any(numeric.is_nan(v) for v in folded):
        return NAN
    if others or len(folded) > 1:
        folded = [v for v in folded if not numeric.is_zero(v)]

    result = [Num(v) for v in folded] + others
    if not result:
        return ZERO
    if len(result) == 1:
        return result[0]
    return Apply("Add", tuple(_sorted(result)))


def make_multiply(args: Sequence[Expr], config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    """Canonical product of canonical factors."""
    factors = _flatten("Multiply", args)
    literals, others = _split_literals(factors)
    if any(numeric.is_nan(v) for v in literals):
        return NAN

    folded = _fold(literals, numeric.multiply, config.decimal_context())
    for v in folded:
        if numeric.is_nan(v):
            return NAN
        if numeric.is_zero(v):
            return Num(v)
    folded = [v for v in folded if not numeric.is_one(v)]

    result = [Num(v) for v in folded] + others
    if not result:
        return ONE
    if len(result) == 1:
        return result[0]
    return Apply("Multiply", tuple(_sorted(result)))


def make_negate(arg: Expr, config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    return make_multiply([NEG_ONE, arg], config)


def make_subtract(a: Expr, b: Expr, config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    return make_add([a, make_negate(b, config)], config)


def make_divide(a: Expr, b: Expr, config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    # literal quotients round once
    if isinstance(a, Num) and isinstance(b, Num):
        q = numeric.divide(a.value, b.value, config.decimal_context())
        if q is not None:
            return Num(q)
    return make_multiply([a, make_power(b, NEG_ONE, config)], config)


def _distributes_coefficient(coef: numeric.Numeric, exp: numeric.Numeric) -> bool:
    """Whether (c*r)^n may be split into c^n * r^n for a literal c."""
    if not numeric.is_coefficient(coef):
        return False
    f = numeric.as_fraction(exp)
    if f is not None and f.denominator % 2 == 1:
        return True
    return numeric.sign(coef) == 1


def make_power(base: Expr, exp: Expr, config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    """Canonical power of canonical operands."""
    if is_nan(base) or is_nan(exp):
        return NAN
    context = config.decimal_context()
    if isinstance(base, Num) and isinstance(exp, Num):
        folded = numeric.power(base.value, exp.value, context)
        if folded is not None:
            return Num(folded)
    if isinstance(exp, Num):
        if numeric.is_zero(exp.value) and not isinstance(base, Num):
            return ONE
        if numeric.is_one(exp.value):
            return base
    if is_literal(base, numeric.ONE) and not (isinstance(exp, Num) and not numeric.is_finite(exp.value)):
        return ONE

    # (c*r)^n -> c^n * r^n for a literal coefficient c
    if isinstance(exp, Num) and isinstance(base, Apply) and base.head == "Multiply":
        lead = base.args[0]
        if isinstance(lead, Num) and _distributes_coefficient(lead.value, exp.value):
            c = numeric.power(lead.value, exp.value, context)
            if c is not None and not numeric.is_nan(c):
                rest = make_multiply(base.args[1:], config)
                return make_multiply([Num(c), make_power(rest, exp, config)], config)

    return Apply("Power", (base, exp))


def make_abs(arg: Expr, config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    if isinstance(arg, Num):
        return Num(numeric.absolute(arg.value, config.decimal_context()))
    return Apply("Abs", (arg,))


# ============================================================
# Logarithms
# ============================================================

def make_ln(arg: Expr, config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    """Natural logarithm; ln(p/q) splits into ln(p) - ln(q)."""
    if isinstance(arg, Num):
        v = arg.value
        folded = numeric.ln(v, config.decimal_context())
        if folded is not None:
            return Num(folded)
        if isinstance(v, numeric.Rational) and v.num > 0:
            return make_subtract(
                make_ln(Num(numeric.Integer(v.num)), config),
                make_ln(Num(numeric.Integer(v.den)), config),
                config,
            )
    return Apply("Ln", (arg,))


def make_log(arg: Expr, base: Expr, config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    """Logarithm of arg in base; base e becomes Ln."""
    if is_literal(base, numeric.E):
        return make_ln(arg, config)
    if is_nan(arg) or is_nan(base):
        return NAN
    if isinstance(arg, Num) and isinstance(base, Num):
        folded = numeric.log(arg.value, base.value, config.decimal_context())
        if folded is not None:
            return Num(folded)
    if isinstance(arg, Num):
        if numeric.is_one(arg.value):
            return ZERO
        if numeric.is_zero(arg.value):
            return NAN
    if arg == base:
        return ONE
    return Apply("Log", (arg, base))


# ============================================================
# Elementary Functions
# ============================================================

# Values at 0, +inf and -inf
_HALF_PI = (numeric.Rational(1, 2), numeric.PI)
FUNCTION_VALUES = {
    "Sin":    (numeric.ZERO, numeric.NAN, numeric.NAN),
    "Cos":    (numeric.ONE, numeric.NAN, numeric.NAN),
    "Tan":    (numeric.ZERO, numeric.NAN, numeric.NAN),
    "Cot":    (numeric.NAN, numeric.NAN, numeric.NAN),
    "Sec":    (numeric.ONE, numeric.NAN, numeric.NAN),
    "Csc":    (numeric.NAN, numeric.NAN, numeric.NAN),
    "Arcsin": (numeric.ZERO, numeric.NAN, numeric.NAN),
    "Arccos": ("half-pi", numeric.NAN, numeric.NAN),
    "Arctan": (numeric.ZERO, "half-pi", "-half-pi"),
    "Sinh":   (numeric.ZERO, numeric.POS_INF, numeric.NEG_INF),
    "Cosh":   (numeric.ONE, numeric.POS_INF, numeric.POS_INF),
    "Tanh":   (numeric.ZERO, numeric.ONE, numeric.NEG_ONE),
    "Coth":   (numeric.NAN, numeric.ONE, numeric.NEG_ONE),
    "Sech":   (numeric.ONE, numeric.ZERO, numeric.ZERO),
    "Csch":   (numeric.NAN, numeric.ZERO, numeric.ZERO),
}

FLOAT_FUNCTIONS = {
    "Sin": math.sin,
    "Cos": math.cos,
    "Tan": math.tan,
    "Cot": lambda x: 1 / math.tan(x),
    "Sec": lambda x: 1 / math.cos(x),
    "Csc": lambda x: 1 / math.sin(x),
    "Arcsin": math.asin,
    "Arccos": math.acos,
    "Arctan": math.atan,
    "Sinh": math.sinh,
    "Cosh": math.cosh,
    "Tanh": math.tanh,
    "Coth": lambda x: 1 / math.tanh(x),
    "Sech": lambda x: 1 / math.cosh(x),
    "Csch": lambda x: 1 / math.sinh(x),
}


def _function_value(value, config: EngineConfig) -> Optional[Expr]:
    if value is None:
        return None
    if value == "half-pi":
        return make_multiply([HALF, PI], config)
    if value == "-half-pi":
        return make_multiply([Num(numeric.Rational(-1, 2)), PI], config)
    return Num(value)


def make_function(head: str, arg: Expr, config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    """Elementary function application, folded at 0, the infinities and Reals."""
    if isinstance(arg, Num):
        v = arg.value
        at_zero, at_pos_inf, at_neg_inf = FUNCTION_VALUES[head]
        folded = None
        if isinstance(v, numeric.Integer) and v.value == 0:
            folded = _function_value(at_zero, config)
        elif v == numeric.POS_INF:
            folded = _function_value(at_pos_inf, config)
        elif v == numeric.NEG_INF:
            folded = _function_value(at_neg_inf, config)
        elif isinstance(v, numeric.Real):
            result = numeric.evaluate_float(FLOAT_FUNCTIONS[head], v, config.decimal_context())
            folded = Num(result) if result is not None else None
        if folded is not None:
            return folded
    return Apply(head, (arg,))


# ============================================================
# Relations
# ============================================================

RELATIONS = {
    "Equal": lambda c: c == 0,
    "NotEqual": lambda c: c != 0,
    "Less": lambda c: c < 0,
    "LessEqual": lambda c: c <= 0,
    "Greater": lambda c: c > 0,
    "GreaterEqual": lambda c: c >= 0,
}


def make_relation(head: str, lhs: Expr, rhs: Expr, config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    """Relation between two sides; literal sides fold to True or False."""
    if isinstance(lhs, Num) and isinstance(rhs, Num):
        c = numeric.compare(lhs.value, rhs.value, config.decimal_context())
        if c is None:
            return TRUE if head == "NotEqual" else FALSE
        return TRUE if RELATIONS[head](c) else FALSE
    return Apply(head, (lhs, rhs))


# ============================================================
# Dispatch
# ============================================================

def _unary(f):
    def handler(args, config):
        if len(args) != 1:
            return None
        return f(args[0], config)
    return handler


def _binary(f):
    def handler(args, config):
        if len(args) != 2:
            return None
        return f(args[0], args[1], config)
    return handler


def _subtract(args, config):
    if len(args) == 1:
        return make_negate(args[0], config)
    if len(args) == 2:
        return make_subtract(args[0], args[1], config)
    return None


def _root(args, config):
    if len(args) != 2:
        return None
    arg, index = args
    if isinstance(arg, Num) and numeric.is_zero(arg.value):
        return ZERO
    return make_power(arg, make_power(index, NEG_ONE, config), config)


def _log(args, config):
    if len(args) == 1:
        return make_log(args[0], Num(numeric.Integer(10)), config)
    if len(args) == 2:
        return make_log(args[0], args[1], config)
    return None


def _function(head):
    return _unary(lambda a, config: make_function(head, a, config))


def _relation(head):
    return _binary(lambda a, b, config: make_relation(head, a, b, config))


CANONICAL_HANDLERS: Dict[str, CanonicalHandler] = {
    "Add": lambda args, config: make_add(args, config),
    "Multiply": lambda args, config: make_multiply(args, config),
    "Power": _binary(make_power),
    "Negate": _unary(make_negate),
    "Subtract": _subtract,
    "Divide": _binary(make_divide),
    "Rational": _binary(make_divide),
    "Sqrt": _unary(lambda a, config: make_power(a, HALF, config)),
    "Root": _root,
    "Square": _unary(lambda a, config: make_power(a, TWO, config)),
    "Exp": _unary(lambda a, config: make_power(EXP_E, a, config)),
    "Abs": _unary(make_abs),
    "Ln": _unary(make_ln),
    "Log": _log,
    "Lb": _unary(lambda a, config: make_log(a, TWO, config)),
    "Lg": _unary(lambda a, config: make_log(a, Num(numeric.Integer(10)), config)),
}
CANONICAL_HANDLERS.update({head: _function(head) for head in FUNCTION_VALUES})
CANONICAL_HANDLERS.update({head: _relation(head) for head in RELATIONS})

# NaN anywhere in the arguments of these heads makes the whole node NaN
NAN_PROPAGATING = frozenset(CANONICAL_HANDLERS) - frozenset(RELATIONS)


def canonicalize(node: Expr, config: EngineConfig = DEFAULT_CONFIG) -> Expr:
    """
    Return the canonical form of an expression tree.

    Canonicalization is idempotent and never changes the value denoted.
    Malformed applications (wrong arity) keep their head with canonical
    arguments.
    """
    if isinstance(node, Num):
        v = node.value
        if isinstance(v, numeric.Real):
            return Num(numeric.real(v.value, config.decimal_context()))
        return node
    if isinstance(node, Sym):
        return symbol(node.name)
    if not isinstance(node, Apply):
        return node

    args = tuple(canonicalize(a, config) for a in node.args)
    head = node.head
    if head in NAN_PROPAGATING and any(is_nan(a) for a in args):
        return NAN
    handler = CANONICAL_HANDLERS.get(head)
    if handler is not None:
        result = handler(args, config)
        if result is not None:
            return result
    return Apply(head, args)
