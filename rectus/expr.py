"""
Expression Model for RECTUS

RECTUS - Rewriting Expressions to Canonical Terms Under Simplification

Expressions are immutable trees. Every node is one of:

    Num(value)          - a numeric literal (see numeric.py)
    Sym(name)           - a symbol such as x, True or Nothing
    Str(value)          - a string literal
    Apply(head, args)   - an application of a named head to arguments
    Opaque(head, data)  - a collection (List, Set, Tuple, ...) carried through
                          untouched; the kernel never looks inside

Nodes compare and hash structurally, so equal trees are interchangeable and
can be used as dictionary keys (the simplify memo relies on this).

JSON Format:
    Expressions are exchanged as MathJSON-style JSON values:

        3, 2.5                     -> numbers
        {"num": "1e999"}           -> numbers given as digit strings
        "x", "Pi"                  -> symbols (Pi, ExponentialE and the
                                      infinities box to numeric literals)
        "'hello'", {"str": "hi"}   -> strings
        ["Add", "x", 1]            -> applications

    box() turns JSON into nodes; to_json() turns nodes back into JSON,
    re-sugaring negation, division and radicals on the way out.

S-expression Format:
    parse_sexpr() reads the rule DSL's s-expression syntax into JSON-shaped
    nested lists, e.g. "(Add x (Multiply 2 y))" -> ["Add", "x", ["Multiply", 2, "y"]].
"""

import decimal
import sys
from dataclasses import dataclass
from fractions import Fraction
from functools import cached_property
from typing import Any, List, Optional, Tuple, Union

from . import numeric
from .numeric import (
    Integer, Rational, Radical, Real, Constant, Special, Numeric,
)


# Heads whose arguments are data, not mathematics
COLLECTION_HEADS = frozenset({
    "List", "Range", "Linspace", "Tuple", "Dictionary", "KeyValuePair",
    "Set", "String", "Sequence",
})


# ============================================================
# Nodes
# ============================================================

class Expr:
    """Base class of expression nodes."""

    __slots__ = ()

    @property
    def sort_key(self) -> tuple:
        raise NotImplementedError

    def size(self) -> int:
        return 1


@dataclass(frozen=True)
class Num(Expr):
    value: Numeric

    @cached_property
    def sort_key(self) -> tuple:
        v = self.value
        if numeric.is_nan(v):
            return (0, 1)
        approx = numeric.to_decimal(v, numeric.make_context(30))
        rank, detail = _literal_detail(v)
        return (0, 0, approx, rank, detail)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Sym(Expr):
    name: str

    @cached_property
    def sort_key(self) -> tuple:
        return (1, self.name)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Str(Expr):
    value: str

    @cached_property
    def sort_key(self) -> tuple:
        return (2, self.value)

    def __str__(self) -> str:
        return f"'{self.value}'"


@dataclass(frozen=True)
class Apply(Expr):
    head: str
    args: Tuple[Expr, ...]

    @cached_property
    def sort_key(self) -> tuple:
        return (3, self.head, len(self.args), tuple(a.sort_key for a in self.args))

    def size(self) -> int:
        return 1 + sum(a.size() for a in self.args)

    def __str__(self) -> str:
        return format_sexpr(to_json(self))


@dataclass(frozen=True)
class Opaque(Expr):
    head: str
    data: tuple

    @cached_property
    def sort_key(self) -> tuple:
        return (4, self.head, repr(self.data))

    def __str__(self) -> str:
        return format_sexpr(to_json(self))


def _literal_detail(v: Numeric) -> Tuple[int, tuple]:
    if isinstance(v, Integer):
        return 0, (v.value,)
    if isinstance(v, Rational):
        return 1, (v.num, v.den)
    if isinstance(v, Radical):
        return 2, (v.radicand, v.index, v.coef)
    if isinstance(v, Real):
        return 3, (v.value,)
    return 4, (v.name,)


ZERO = Num(numeric.ZERO)
ONE = Num(numeric.ONE)
NEG_ONE = Num(numeric.NEG_ONE)
TWO = Num(Integer(2))
HALF = Num(Rational(1, 2))
PI = Num(numeric.PI)
EXP_E = Num(numeric.E)
NAN = Num(numeric.NAN)
POS_INF = Num(numeric.POS_INF)
NEG_INF = Num(numeric.NEG_INF)
TRUE = Sym("True")
FALSE = Sym("False")


def apply(head: str, *args: Expr) -> Apply:
    """Build an application node."""
    return Apply(sys.intern(head), tuple(args))


def is_nan(node: Expr) -> bool:
    return isinstance(node, Num) and numeric.is_nan(node.value)


def is_literal(node: Expr, value: Numeric) -> bool:
    """True if node is the numeric literal `value` (structurally)."""
    return isinstance(node, Num) and node.value == value


def head_of(node: Expr) -> Optional[str]:
    return node.head if isinstance(node, Apply) else None


# ============================================================
# Boxing (JSON -> nodes)
# ============================================================

def _freeze(data: Any) -> Any:
    if isinstance(data, (list, tuple)):
        return ("list", tuple(_freeze(x) for x in data))
    if isinstance(data, dict):
        return ("dict", tuple((k, _freeze(v)) for k, v in data.items()))
    return data


def _thaw(data: Any) -> Any:
    if isinstance(data, tuple) and len(data) == 2 and data[0] in ("list", "dict"):
        kind, items = data
        if kind == "list":
            return [_thaw(x) for x in items]
        return {k: _thaw(v) for k, v in items}
    return data


def symbol(name: str) -> Expr:
    """Box a symbol name, mapping the numeric constants to literals."""
    if name in numeric.CONSTANTS:
        return Num(numeric.CONSTANTS[name])
    if name in numeric.SPECIALS:
        return Num(numeric.SPECIALS[name])
    return Sym(sys.intern(name))


def box(data: Any) -> Expr:
    """
    Convert a JSON-shaped value into an expression tree.

    Boxing is purely structural: ["Add", "x", 0] boxes to an Add node with
    two arguments. Canonicalization happens separately.

    Raises:
        ValueError: if data is not a JSON-shaped value.
    """
    if isinstance(data, Expr):
        return data
    if isinstance(data, bool):
        return Sym("True" if data else "False")
    if isinstance(data, int):
        return Num(Integer(data))
    if isinstance(data, float):
        return Num(numeric.from_float(data))
    if isinstance(data, Fraction):
        return Num(numeric.from_fraction(data))
    if isinstance(data, decimal.Decimal):
        return Num(numeric.real(data, numeric.make_context(max(len(data.as_tuple().digits), 1))))
    if isinstance(data, str):
        if len(data) >= 2 and data[0] == "'" and data[-1] == "'":
            return Str(data[1:-1])
        return symbol(data)
    if isinstance(data, dict):
        if "num" in data:
            return Num(numeric.parse_number(str(data["num"])))
        if "sym" in data:
            return symbol(data["sym"])
        if "str" in data:
            return Str(data["str"])
        if "fn" in data:
            return box(data["fn"])
        return Opaque("Dictionary", _freeze(data))
    if isinstance(data, (list, tuple)):
        if not data:
            return Sym("Nothing")
        head = data[0]
        if not isinstance(head, str) or head in COLLECTION_HEADS:
            return Opaque(head if isinstance(head, str) else "Apply", _freeze(list(data)))
        return Apply(sys.intern(head), tuple(box(a) for a in data[1:]))
    raise ValueError(f"Cannot box {type(data).__name__} value: {data!r}")


# ============================================================
# Unboxing (nodes -> JSON)
# ============================================================

def _integer_json(n: int, config) -> Any:
    if abs(n) < config.native_integer_limit:
        return n
    return {"num": str(n)}


def _fraction_json(f: Fraction, config) -> Any:
    if f.denominator == 1:
        return _integer_json(f.numerator, config)
    return ["Rational", _integer_json(f.numerator, config), _integer_json(f.denominator, config)]


def decimal_string(d: decimal.Decimal, context: decimal.Context) -> str:
    """
    Shortest digit string for a decimal: 1E+999 -> '1.0e+999'.

    The mantissa always has a decimal point, so the string reads back as an
    approximate value rather than an exact integer.
    """
    mantissa, _, exponent = str(d.normalize(context)).partition('E')
    if '.' not in mantissa:
        mantissa += '.0'
    return f"{mantissa}e{exponent}" if exponent else mantissa


def number_json(v: Numeric, config=None) -> Any:
    """JSON rendering of a numeric literal."""
    config = config or _default_config()
    if isinstance(v, Integer):
        return _integer_json(v.value, config)
    if isinstance(v, Rational):
        return _fraction_json(Fraction(v.num, v.den), config)
    if isinstance(v, Radical):
        if v.index == 2:
            root = ["Sqrt", _integer_json(v.radicand, config)]
        else:
            root = ["Root", _integer_json(v.radicand, config), v.index]
        if v.coef == 1:
            return root
        if v.coef == -1:
            return ["Negate", root]
        return ["Multiply", _fraction_json(v.coef, config), root]
    if isinstance(v, Real):
        context = config.decimal_context()
        d = v.value.normalize(context)
        if d.is_zero():
            return 0.0
        digits = len(d.as_tuple().digits)
        if digits <= config.native_digits and abs(d.adjusted()) < 300:
            return float(d)
        return {"num": decimal_string(d, context)}
    return v.name


def _negative_exponent(node: Expr) -> Optional[Numeric]:
    """For x^(-n) with a negative literal exponent return n, else None."""
    if isinstance(node, Apply) and node.head == "Power" and len(node.args) == 2:
        exp = node.args[1]
        if isinstance(exp, Num) and numeric.is_coefficient(exp.value) and numeric.sign(exp.value) == -1:
            return numeric.negate(exp.value)
    return None


def _factors_json(factors: List[Expr], config) -> Any:
    if not factors:
        return 1
    if len(factors) == 1:
        return to_json(factors[0], config)
    return ["Multiply"] + [to_json(f, config) for f in factors]


def _product_json(args: Tuple[Expr, ...], config) -> Any:
    numer, denom = [], []
    for a in args:
        n = _negative_exponent(a)
        if n is None:
            numer.append(a)
        elif numeric.is_one(n):
            denom.append(a.args[0])
        else:
            denom.append(Apply("Power", (a.args[0], Num(n))))

    negated = False
    if numer and is_literal(numer[0], numeric.NEG_ONE):
        negated = True
        numer = numer[1:]

    top = _factors_json(numer, config)
    result = ["Divide", top, _factors_json(denom, config)] if denom else top
    return ["Negate", result] if negated else result


def to_json(node: Expr, config=None) -> Any:
    """
    Convert an expression tree to JSON.

    Products with a leading -1 are written as Negate, factors with negative
    literal exponents move into a Divide, and radical literals are written
    as Sqrt/Root.
    """
    config = config or _default_config()
    if isinstance(node, Num):
        return number_json(node.value, config)
    if isinstance(node, Sym):
        return node.name
    if isinstance(node, Str):
        return f"'{node.value}'"
    if isinstance(node, Opaque):
        return _thaw(node.data)
    if node.head == "Multiply":
        return _product_json(node.args, config)
    if node.head == "Power":
        n = _negative_exponent(node)
        if n is not None:
            base = node.args[0] if numeric.is_one(n) else Apply("Power", (node.args[0], Num(n)))
            return ["Divide", 1, to_json(base, config)]
    return [node.head] + [to_json(a, config) for a in node.args]


def _default_config():
    from .config import DEFAULT_CONFIG
    return DEFAULT_CONFIG


# ============================================================
# Expression Builder
# ============================================================

class _ExprBuilder:
    """
    Expression builder for RECTUS.

    Provides convenient ways to construct expression trees.

    Examples:
        from rectus import E

        # Parse s-expression string
        expr = E("(Add x (Multiply 2 y))")

        # Build programmatically with E.op()
        expr = E.op("Add", "x", E.op("Multiply", 2, "y"))

        # Create variables
        x, y = E.vars("x", "y")
        expr = E.op("Power", x, 2)
    """

    def __call__(self, s: str) -> Expr:
        """
        Parse an s-expression string into an expression tree.

        Examples:
            E("(Add x 1)") -> Apply("Add", (Sym("x"), Num(Integer(1))))
        """
        return box(parse_sexpr(s))

    def op(self, name: str, *args) -> Apply:
        """
        Build an application; arguments are boxed from JSON as needed.

        Examples:
            E.op("Add", "x", 1)
            E.op("Sin", E.op("Multiply", 2, "x"))
        """
        return Apply(sys.intern(name), tuple(box(a) for a in args))

    def var(self, name: str) -> Expr:
        return symbol(name)

    def vars(self, *names: str) -> Tuple[Expr, ...]:
        """
        Create multiple symbols for unpacking.

        Example:
            x, y, z = E.vars("x", "y", "z")
        """
        return tuple(symbol(n) for n in names)

    def num(self, value: Union[int, float, str, Fraction]) -> Num:
        """
        Create a numeric literal. Strings are read as digit strings.

        Example:
            E.num(5), E.num("1e999"), E.num(Fraction(3, 4))
        """
        if isinstance(value, str):
            return Num(numeric.parse_number(value))
        return box(value)

    def json(self, data: Any) -> Expr:
        return box(data)

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()


# ============================================================
# S-expressions
# ============================================================

def _split_sexpr(s: str) -> List[str]:
    parts = []
    depth = 0
    current = ''
    for c in s:
        if c == '(':
            depth += 1
            current += c
        elif c == ')':
            depth -= 1
            current += c
        elif c in ' \t\n' and depth == 0:
            if current.strip():
                parts.append(current.strip())
            current = ''
        else:
            current += c
    if current.strip():
        parts.append(current.strip())
    return parts


def parse_sexpr(s: str) -> Any:
    """
    Parse an S-expression string into JSON-shaped nested lists.

    Numbers become ints or floats, everything else is a symbol string.
    Rule pattern sugar is expanded as well:

        ?x, ?x:expr        -> ["?", "x"]
        ?n:const           -> ["?c", "n"]
        ?v:var             -> ["?v", "v"]
        ?e:free(v)         -> ["?free", "e", "v"]
        ?xs..., ?xs:const... -> ["?...", "xs"], ["?...", "xs", "const"]
        :x, :xs...         -> [":", "x"], [":...", "xs"]

    Examples:
        "(Add x 1)" -> ["Add", "x", 1]
        "(Power ?x ?n:const)" -> ["Power", ["?", "x"], ["?c", "n"]]
    """
    s = s.strip()
    if not s:
        return None

    if s.startswith('('):
        end = s.rfind(')')
        inner = s[1:end] if end > 0 else s[1:]
        return [parse_sexpr(part) for part in _split_sexpr(inner)]

    # Try number first; floats that would lose digits stay digit strings
    try:
        return int(s)
    except ValueError:
        try:
            value = float(s)
        except ValueError:
            pass
        else:
            digits = sum(c.isdigit() for c in s.split('e')[0].split('E')[0].lstrip('+-0.'))
            if value != value or value in (float('inf'), float('-inf')) or digits > 15:
                return {"num": s}
            return value

    if s.startswith('?'):
        rest = s[1:]
        is_rest = rest.endswith('...')
        if is_rest:
            rest = rest[:-3]

        if ':' in rest:
            name_part, type_part = rest.split(':', 1)
            name = name_part.strip() or 'x'
            if is_rest:
                if type_part in ('const', 'var'):
                    return ["?...", name, type_part]
                return ["?...", name]
            if type_part == 'const':
                return ["?c", name]
            if type_part == 'var':
                return ["?v", name]
            if type_part.startswith('free(') and type_part.endswith(')'):
                return ["?free", name, type_part[5:-1].strip()]
            return ["?", name]

        name = rest.strip() or 'x'
        if is_rest:
            return ["?...", name]
        return ["?", name]

    if s.startswith(':') and len(s) > 1:
        rest = s[1:].strip()
        if rest.endswith('...'):
            return [":...", rest[:-3].strip()]
        return [":", rest]

    return s


def format_sexpr(data: Any, dsl_syntax: bool = True) -> str:
    """
    Format JSON-shaped data (or an expression tree) as an S-expression.

    Args:
        data: Expression tree, or nested lists as produced by to_json()
        dsl_syntax: If True, use DSL syntax for patterns (?x, :x).

    Examples:
        ["Add", "x", 1] -> "(Add x 1)"
        {"num": "1.0e+999"} -> "1.0e+999"
        ["?c", "n"] -> "?n:const"
    """
    if isinstance(data, Expr):
        data = to_json(data)
    if isinstance(data, list):
        if not data:
            return "()"
        if dsl_syntax and len(data) == 2:
            op = data[0]
            if op == "?":
                return f"?{data[1]}"
            elif op == ":":
                return f":{data[1]}"
            elif op == "?c":
                return f"?{data[1]}:const"
            elif op == "?v":
                return f"?{data[1]}:var"
            elif op == "?...":
                return f"?{data[1]}..."
            elif op == ":...":
                return f":{data[1]}..."
        if dsl_syntax and len(data) == 3:
            op = data[0]
            if op == "?free":
                return f"?{data[1]}:free({data[2]})"
            elif op == "?...":
                return f"?{data[1]}:{data[2]}..."
        return "(" + " ".join(format_sexpr(e, dsl_syntax) for e in data) + ")"
    if isinstance(data, dict):
        if "num" in data:
            return str(data["num"])
        if "str" in data:
            return f"'{data['str']}'"
        return "{" + ", ".join(f"{k}: {format_sexpr(v, dsl_syntax)}" for k, v in data.items()) + "}"
    if isinstance(data, bool):
        return "True" if data else "False"
    return str(data)
