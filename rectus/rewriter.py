"""
Pattern matching and instantiation for RECTUS rules.

RECTUS - Rewriting Expressions to Canonical Terms Under Simplification

Rules are written as s-expressions (see expr.parse_sexpr) and compiled
into templates: ordinary expression nodes with pattern variables in
argument positions.

Pattern syntax:
    ?x, ?x:expr        - match any expression, bind to x
    ?x:const           - match numeric literals only
    ?x:var             - match symbols only
    ?x:free(v)         - match expressions not containing the symbol bound to v
    ?xs...             - match the remaining arguments (zero or more)
    ?xs:const...       - match remaining arguments, each a numeric literal
    literal            - match exactly

Skeleton syntax:
    :x                 - substitute the bound value of x
    :xs...             - splice a bound argument sequence into the parent
    (! op args...)     - compute op(args) with the active fold functions
    literal            - keep as-is

Matching is purely structural and order-sensitive: canonical forms sort
the arguments of Add and Multiply, so patterns are written against
canonical trees.
"""

import decimal
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from . import numeric
from .expr import Expr, Num, Sym, Apply, TRUE, FALSE, box, parse_sexpr, symbol

# Type aliases
BindingsType = Union[List[List], str]  # List of [name, value] pairs or "failed"
FoldResult = Union[Expr, bool, None]
FoldHandler = Callable[[List[Expr], decimal.Context], FoldResult]
FoldFuncsType = Dict[str, FoldHandler]


# ============================================================
# Bindings Class - Dict-like interface for match results
# ============================================================

class Bindings:
    """
    Dict-like wrapper for pattern matching bindings.

    Provides convenient access to bound values with a clean interface:

        if bindings := engine.match("(Add ?a ?b)", expr):
            print(bindings["a"], bindings["b"])
            print(bindings.get("c", default=0))

    Bindings objects are truthy when a match succeeded.
    Use NoMatch (which is falsy) to represent failed matches.
    Rest variables (?xs...) are bound to tuples of expressions.
    """

    __slots__ = ('_dict',)

    def __init__(self, pairs: List[List]):
        """Initialize from list of [name, value] pairs."""
        self._dict = {name: value for name, value in pairs}

    def __bool__(self) -> bool:
        return True

    def __getitem__(self, key: str):
        return self._dict[key]

    def get(self, key: str, default=None):
        return self._dict.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._dict

    def keys(self):
        return self._dict.keys()

    def values(self):
        return self._dict.values()

    def items(self):
        return self._dict.items()

    def __iter__(self):
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        return f"Bindings({self._dict})"

    def __eq__(self, other):
        if isinstance(other, Bindings):
            return self._dict == other._dict
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary."""
        return self._dict.copy()


class _NoMatch:
    """
    Singleton representing a failed pattern match.

    NoMatch is falsy, allowing natural use in conditionals:

        if bindings := engine.match(pattern, expr):
            # matched
        else:
            # NoMatch
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoMatch"

    def __getitem__(self, key: str):
        raise KeyError(f"NoMatch has no binding for '{key}'")

    def get(self, key: str, default=None):
        return default

    def __contains__(self, key: str) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter([])


# Singleton instance
NoMatch = _NoMatch()


def wrap_bindings(result: BindingsType) -> Union[Bindings, _NoMatch]:
    """
    Convert internal bindings representation to Bindings or NoMatch.

    Args:
        result: Either list of [name, value] pairs or "failed"

    Returns:
        Bindings object if matched, NoMatch if failed
    """
    if result == "failed":
        return NoMatch
    return Bindings(result)


# ============================================================
# Fold Operation Builders
# ============================================================

def _values(args: List[Expr]) -> Optional[List[numeric.Numeric]]:
    if all(isinstance(a, Num) for a in args):
        return [a.value for a in args]
    return None


def _boxed(value: Optional[numeric.Numeric]) -> Optional[Expr]:
    return Num(value) if value is not None else None


def nary_fold(
    identity: numeric.Numeric,
    binary_op: Callable[..., Optional[numeric.Numeric]],
) -> FoldHandler:
    """Create an n-ary folder with identity element.

    Args:
        identity: Value for 0-arity, e.g. 0 for Add, 1 for Multiply
        binary_op: Numeric operation taking (a, b, context)

    Examples:
        nary_fold(ZERO, numeric.add)       # (Add) = 0, (Add x) = x
        nary_fold(ONE, numeric.multiply)   # (Multiply) = 1
    """
    def handler(args: List[Expr], context: decimal.Context) -> Optional[Expr]:
        values = _values(args)
        if values is None:
            return None
        if not values:
            return Num(identity)
        result = values[0]
        for v in values[1:]:
            result = binary_op(result, v, context)
            if result is None:
                return None
        return Num(result)
    return handler


def unary_only(f: Callable[..., Optional[numeric.Numeric]]) -> FoldHandler:
    """Create a unary-only numeric folder (e.g. Negate, Abs)."""
    def handler(args: List[Expr], context: decimal.Context) -> Optional[Expr]:
        values = _values(args)
        if values is None or len(values) != 1:
            return None
        return _boxed(f(values[0], context))
    return handler


def binary_only(f: Callable[..., Optional[numeric.Numeric]]) -> FoldHandler:
    """Create a binary-only numeric folder (e.g. Divide, Power)."""
    def handler(args: List[Expr], context: decimal.Context) -> Optional[Expr]:
        values = _values(args)
        if values is None or len(values) != 2:
            return None
        return _boxed(f(values[0], values[1], context))
    return handler


def special_minus() -> FoldHandler:
    """Special handler for subtraction: (Subtract x) = -x, (Subtract x y) = x-y."""
    def handler(args: List[Expr], context: decimal.Context) -> Optional[Expr]:
        values = _values(args)
        if values is None:
            return None
        if len(values) == 1:
            return _boxed(numeric.negate(values[0], context))
        if len(values) == 2:
            return _boxed(numeric.subtract(values[0], values[1], context))
        return None
    return handler


def node_predicate(f: Callable[[Expr], bool]) -> FoldHandler:
    """Create a unary predicate over expression nodes."""
    def handler(args: List[Expr], context: decimal.Context) -> Optional[bool]:
        if len(args) != 1:
            return None
        return bool(f(args[0]))
    return handler


def value_predicate(f: Callable[[numeric.Numeric], bool]) -> FoldHandler:
    """Create a unary predicate over numeric literals; non-literals fail it."""
    def handler(args: List[Expr], context: decimal.Context) -> Optional[bool]:
        if len(args) != 1:
            return None
        a = args[0]
        return isinstance(a, Num) and bool(f(a.value))
    return handler


def comparison(accept: Callable[[int], bool]) -> FoldHandler:
    """Create a binary predicate from a three-way numeric comparison."""
    def handler(args: List[Expr], context: decimal.Context) -> Optional[bool]:
        values = _values(args)
        if values is None or len(values) != 2:
            return False
        c = numeric.compare(values[0], values[1], context)
        return c is not None and accept(c)
    return handler


def truth(node: Any) -> bool:
    """Truth of a computed condition value; unevaluated forms are false."""
    if isinstance(node, bool):
        return node
    if node == TRUE:
        return True
    if isinstance(node, Num):
        return not numeric.is_zero(node.value) and not numeric.is_nan(node.value)
    return False


def logical(combine: Callable[[List[bool]], bool]) -> FoldHandler:
    def handler(args: List[Expr], context: decimal.Context) -> bool:
        return combine([truth(a) for a in args])
    return handler


def _fraction_test(f: Callable[[Any], bool]) -> Callable[[numeric.Numeric], bool]:
    def test(v: numeric.Numeric) -> bool:
        q = numeric.as_fraction(v)
        return q is not None and f(q)
    return test


# ============================================================
# Standard Preludes for Computed Skeletons
# ============================================================

# Arithmetic prelude: exact arithmetic on numeric literals
ARITHMETIC_PRELUDE: FoldFuncsType = {
    "Add": nary_fold(numeric.ZERO, numeric.add),
    "Multiply": nary_fold(numeric.ONE, numeric.multiply),
    "Subtract": special_minus(),
    "Negate": unary_only(numeric.negate),
    "Divide": binary_only(numeric.divide),
    "Power": binary_only(numeric.power),
    "Abs": unary_only(numeric.absolute),
}

# Predicate prelude: type and value tests for conditional guards
PREDICATE_PRELUDE: FoldFuncsType = {
    # Comparison operators
    ">": comparison(lambda c: c > 0),
    "<": comparison(lambda c: c < 0),
    ">=": comparison(lambda c: c >= 0),
    "<=": comparison(lambda c: c <= 0),
    "=": comparison(lambda c: c == 0),
    "!=": comparison(lambda c: c != 0),
    # Type predicates
    "const?": node_predicate(lambda x: isinstance(x, Num)),
    "var?": node_predicate(lambda x: isinstance(x, Sym)),
    "list?": node_predicate(lambda x: isinstance(x, Apply)),
    "atom?": node_predicate(lambda x: not isinstance(x, Apply)),
    "same?": lambda args, context: len(args) == 2 and args[0] == args[1],
    # Value predicates
    "zero?": value_predicate(numeric.is_zero),
    "positive?": value_predicate(lambda v: numeric.sign(v) == 1),
    "negative?": value_predicate(lambda v: numeric.sign(v) == -1),
    "finite?": value_predicate(lambda v: numeric.is_finite(v)),
    "real?": value_predicate(lambda v: numeric.is_finite(v) and not isinstance(v, numeric.Constant)),
    "integer?": value_predicate(lambda v: isinstance(v, numeric.Integer)),
    "rational?": value_predicate(lambda v: numeric.as_fraction(v) is not None),
    "even?": value_predicate(_fraction_test(lambda q: q.denominator == 1 and q.numerator % 2 == 0)),
    "odd?": value_predicate(_fraction_test(lambda q: q.denominator == 1 and q.numerator % 2 == 1)),
    "even-numerator?": value_predicate(_fraction_test(lambda q: q.numerator % 2 == 0)),
    "odd-denominator?": value_predicate(_fraction_test(lambda q: q.denominator % 2 == 1)),
    # Logical operators
    "not": logical(lambda xs: len(xs) == 1 and not xs[0]),
    "and": logical(all),
    "or": logical(any),
}

# Full prelude: arithmetic + predicates (common choice for conditional rules)
FULL_PRELUDE: FoldFuncsType = {
    **ARITHMETIC_PRELUDE,
    **PREDICATE_PRELUDE,
}

# Empty prelude (computed skeletons stay unevaluated)
NO_PRELUDE: FoldFuncsType = {}


# ============================================================
# Templates
# ============================================================

@dataclass(frozen=True)
class PatternVar:
    """A pattern variable: ?name, ?name:const, ?name:var or ?name:free(v)."""
    name: str
    kind: str = "expr"
    exclude: Optional[str] = None


@dataclass(frozen=True)
class RestVar:
    """A rest pattern variable (?name...), optionally constrained per item."""
    name: str
    kind: Optional[str] = None


@dataclass(frozen=True)
class Substitute:
    """Skeleton reference :name, or :name... when splice is set."""
    name: str
    splice: bool = False


@dataclass(frozen=True)
class Compute:
    """Skeleton computation (! op args...)."""
    op: str
    args: Tuple[Any, ...]


_VAR_KINDS = {"?": "expr", "?c": "const", "?v": "var"}


def compile_template(data: Any) -> Any:
    """
    Compile parsed s-expression data into a template tree.

    Accepts a DSL string or the nested lists produced by parse_sexpr.
    Ordinary atoms and applications are boxed into expression nodes.

    Raises:
        ValueError: on malformed pattern forms
    """
    if isinstance(data, str):
        data = parse_sexpr(data)
    return _compile(data)


def _compile(data: Any) -> Any:
    if not isinstance(data, list):
        return box(data)
    if not data:
        raise ValueError("Empty form in rule template")

    op = data[0]
    if op in _VAR_KINDS:
        return PatternVar(data[1], _VAR_KINDS[op])
    if op == "?free":
        return PatternVar(data[1], "free", data[2])
    if op == "?...":
        return RestVar(data[1], data[2] if len(data) > 2 else None)
    if op == ":":
        return Substitute(data[1])
    if op == ":...":
        return Substitute(data[1], splice=True)
    if op == "!":
        if len(data) < 2:
            raise ValueError("Compute form (!) needs an operator")
        return Compute(data[1], tuple(_compile(a) for a in data[2:]))
    if not isinstance(op, str):
        raise ValueError(f"Rule template head must be a name, got {op!r}")

    args = tuple(_compile(a) for a in data[1:])
    for i, a in enumerate(args):
        if isinstance(a, RestVar) and i != len(args) - 1:
            raise ValueError("Rest pattern (?...) must be last in compound pattern")
    return Apply(op, args)


def template_head(template: Any) -> Optional[str]:
    """The head a compiled pattern requires, or None if it matches any node."""
    if isinstance(template, Apply):
        return template.head
    return None


# ============================================================
# Bindings Helpers
# ============================================================

def free_in(var: Expr, expr: Expr) -> bool:
    """
    Check if a symbol appears anywhere in an expression.

    Args:
        var: Symbol to check for
        expr: Expression to search in
    """
    if expr == var:
        return True
    if isinstance(expr, Apply):
        return any(free_in(var, sub) for sub in expr.args)
    return False


def extend_bindings(name: str, dat: Any, bindings: BindingsType) -> BindingsType:
    """
    Extend bindings with name -> dat.

    Returns:
        Extended bindings, or "failed" if name is bound to something else
    """
    if bindings == "failed":
        return "failed"

    for entry in bindings:
        if entry[0] == name:
            if entry[1] == dat:
                return bindings
            return "failed"

    return bindings + [[name, dat]]


def lookup(var: str, bindings: BindingsType) -> Any:
    """
    Look up a variable in the bindings.

    Returns:
        The bound value, or the symbol named var if unbound
    """
    if bindings != "failed":
        for entry in bindings:
            if entry[0] == var:
                return entry[1]
    return symbol(var)


# ============================================================
# Pattern Matching
# ============================================================

def _kind_accepts(kind: Optional[str], exp: Expr) -> bool:
    if kind == "const":
        return isinstance(exp, Num)
    if kind == "var":
        return isinstance(exp, Sym)
    return True


def match(pat: Any, exp: Expr, bindings: BindingsType) -> BindingsType:
    """
    Match a compiled pattern against an expression with bindings.

    Args:
        pat: The compiled pattern
        exp: The expression to match against
        bindings: Current bindings

    Returns:
        Updated bindings on success, "failed" on failure
    """
    if bindings == "failed":
        return "failed"

    if isinstance(pat, PatternVar):
        if pat.kind == "free":
            excluded = lookup(pat.exclude, bindings)
            if not isinstance(excluded, Sym) or free_in(excluded, exp):
                return "failed"
            return extend_bindings(pat.name, exp, bindings)
        if not _kind_accepts(pat.kind, exp):
            return "failed"
        return extend_bindings(pat.name, exp, bindings)

    if isinstance(pat, Apply):
        if not isinstance(exp, Apply) or exp.head != pat.head:
            return "failed"
        return match_compound(pat.args, exp.args, bindings)

    return bindings if pat == exp else "failed"


def match_compound(pats: Tuple[Any, ...], exps: Tuple[Expr, ...], bindings: BindingsType) -> BindingsType:
    """
    Match argument sequences. A rest pattern (?...) may close the sequence.
    """
    for i, pat in enumerate(pats):
        if bindings == "failed":
            return "failed"
        if isinstance(pat, RestVar):
            remaining = tuple(exps[i:])
            if any(not _kind_accepts(pat.kind, item) for item in remaining):
                return "failed"
            return extend_bindings(pat.name, remaining, bindings)
        if i >= len(exps):
            return "failed"
        bindings = match(pat, exps[i], bindings)

    if bindings == "failed" or len(exps) != len(pats):
        return "failed"
    return bindings


# ============================================================
# Instantiation
# ============================================================

def instantiate(
    skeleton: Any,
    bindings: BindingsType,
    fold_funcs: Optional[FoldFuncsType] = None,
    context: Optional[decimal.Context] = None,
) -> Any:
    """
    Instantiate a compiled skeleton with bindings.

    Args:
        skeleton: The compiled skeleton
        bindings: The bindings from a successful match
        fold_funcs: Fold functions for compute (!) evaluation
        context: Decimal context handed to fold functions

    Returns:
        The instantiated expression (not canonicalized)
    """
    context = context or numeric.DEFAULT_CONTEXT

    if isinstance(skeleton, Substitute):
        value = lookup(skeleton.name, bindings)
        if isinstance(value, tuple):
            return Apply("Sequence", value)
        return value

    if isinstance(skeleton, Compute):
        args = instantiate_args(skeleton.args, bindings, fold_funcs, context)
        if fold_funcs and skeleton.op in fold_funcs:
            result = fold_funcs[skeleton.op](args, context)
            if isinstance(result, bool):
                return TRUE if result else FALSE
            if result is not None:
                return result
        return Apply(skeleton.op, tuple(args))

    if isinstance(skeleton, Apply):
        return Apply(skeleton.head, tuple(instantiate_args(skeleton.args, bindings, fold_funcs, context)))

    return skeleton


def instantiate_args(
    skeletons: Tuple[Any, ...],
    bindings: BindingsType,
    fold_funcs: Optional[FoldFuncsType],
    context: decimal.Context,
) -> List[Expr]:
    """
    Instantiate argument skeletons, splicing :name... references in place.
    """
    out: List[Expr] = []
    for s in skeletons:
        if isinstance(s, Substitute) and s.splice:
            spliced = lookup(s.name, bindings)
            if isinstance(spliced, tuple):
                out.extend(spliced)
            else:
                out.append(spliced)
        else:
            out.append(instantiate(s, bindings, fold_funcs, context))
    return out
