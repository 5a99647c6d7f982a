"""
RECTUS - Rewriting Expressions to Canonical Terms Under Simplification

A symbolic algebra kernel: an exact numeric tower, immutable expression
trees, a canonicalizer and a rule-driven simplifier.

Quick Start:
    from rectus import simplify

    simplify(["Add", "x", ["Multiply", 2, "x"]])     # ["Multiply", 3, "x"]
    simplify(["Sqrt", ["Power", "x", 6]])            # ["Power", ["Abs", "x"], 3]
    simplify(["Rational", 6, 8])                     # ["Rational", 3, 4]

Engines:
    from rectus import Engine, EngineConfig, E

    engine = Engine(EngineConfig(precision=30))
    engine.disable_group("distribute")
    engine.load_dsl('''
        [logarithms]
        @exp-ln "Exp undoes Ln": (Exp (Ln ?x)) => :x
    ''')
    result, trace = engine.simplify(E("(Exp (Ln y))"), trace=True)

DSL Syntax:
    # Comments start with #
    @rule-name: (pattern) => (skeleton)
    @rule-name[priority] "Description": (pattern) => (skeleton) when (condition)

Pattern Syntax:
    ?x or ?x:expr     - match any expression, bind to x
    ?x:const          - match a numeric literal only
    ?x:var            - match a symbol only
    ?x:free(v)        - match expression not containing v
    ?xs...            - match the remaining arguments
    :x, :xs...        - substitute bound values
    (! op args...)    - compute with the prelude (e.g. (! Negate :c))
"""

__version__ = "0.1.0"

from . import numeric

from .config import EngineConfig, DEFAULT_CONFIG

from .expr import (
    Expr,
    Num,
    Sym,
    Str,
    Apply,
    Opaque,
    E,
    box,
    to_json,
    parse_sexpr,
    format_sexpr,
)

from .canonical import canonicalize as canonical_form

from .rewriter import (
    match,
    instantiate,
    compile_template,
    Bindings,
    NoMatch,
    wrap_bindings,
    FoldHandler,
    FoldFuncsType,
    nary_fold,
    unary_only,
    binary_only,
    ARITHMETIC_PRELUDE,
    PREDICATE_PRELUDE,
    FULL_PRELUDE,
    NO_PRELUDE,
)

from .rules import (
    Rule,
    RuleBook,
    RuleMetadata,
    load_rules_from_dsl,
    load_rules_from_file,
    load_rules_from_json,
)

from .catalogue import default_rulebook

from .engine import (
    Engine,
    RewriteStep,
    RewriteTrace,
    simplify,
    canonicalize,
)

__all__ = [
    # Numbers and configuration
    "numeric",
    "EngineConfig",
    "DEFAULT_CONFIG",
    # Expressions
    "Expr",
    "Num",
    "Sym",
    "Str",
    "Apply",
    "Opaque",
    "E",
    "box",
    "to_json",
    "parse_sexpr",
    "format_sexpr",
    "canonical_form",
    # Matching
    "match",
    "instantiate",
    "compile_template",
    "Bindings",
    "NoMatch",
    "wrap_bindings",
    "FoldHandler",
    "FoldFuncsType",
    "nary_fold",
    "unary_only",
    "binary_only",
    "ARITHMETIC_PRELUDE",
    "PREDICATE_PRELUDE",
    "FULL_PRELUDE",
    "NO_PRELUDE",
    # Rules
    "Rule",
    "RuleBook",
    "RuleMetadata",
    "load_rules_from_dsl",
    "load_rules_from_file",
    "load_rules_from_json",
    "default_rulebook",
    # Engine
    "Engine",
    "RewriteStep",
    "RewriteTrace",
    "simplify",
    "canonicalize",
]
