#!/usr/bin/env python3
"""
RECTUS Feature Demonstration

This script walks through the numeric tower, canonical forms, the default
rule catalogue and custom rules.
"""

import json
import logging

from rectus import (
    Engine, EngineConfig, E,
    simplify, canonicalize, format_sexpr,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def show(expr, result):
    print(f"  {json.dumps(expr)} => {json.dumps(result)}")


def demo_exact_numbers():
    """Exact rationals, radicals and the infinities."""
    section("Exact Numbers")

    examples = [
        ["Rational", 6, 8],
        ["Add", ["Sqrt", 8], ["Sqrt", 2]],
        ["Multiply", ["Sqrt", 2], ["Sqrt", 2]],
        ["Log", 1000, 10],
        ["Add", "PositiveInfinity", "NegativeInfinity"],
        ["Multiply", 0, "PositiveInfinity"],
    ]
    for expr in examples:
        show(expr, simplify(expr))


def demo_precision():
    """Reals round to the configured number of significant digits."""
    section("Precision")

    expr = ["Divide", 2.0, 3]
    for config in (EngineConfig.low_precision(), EngineConfig(), EngineConfig.high_precision()):
        print(f"  {config.precision:>2} digits: {simplify(expr, config)}")

    show(["Add", 1, {"num": "1e999"}], simplify(["Add", 1, {"num": "1e999"}]))


def demo_canonical_forms():
    """Canonicalization alone: flattening, sorting and numeric folding."""
    section("Canonical Forms")

    examples = [
        ["Add", "z", ["Add", "y", "x"], 1, 2],
        ["Subtract", "x", "y"],
        ["Divide", "x", ["Power", "y", 2]],
        ["Multiply", 2, ["Multiply", 3, "x"]],
    ]
    for expr in examples:
        show(expr, canonicalize(expr))


def demo_simplification():
    """The default catalogue: like terms, powers, abs, parity and logarithms."""
    section("Simplification")

    examples = [
        ["Add", "x", ["Multiply", 2, "x"]],
        ["Sqrt", ["Power", "x", 6]],
        ["Power", ["Negate", "x"], 3],
        ["Subtract", ["Power", ["Add", "x", 1], 2], ["Power", "x", 2]],
        ["Abs", ["Multiply", "Pi", ["Sin", ["Negate", "x"]]]],
        ["Subtract", ["Ln", ["Multiply", "x", "y"]], ["Ln", "x"]],
        ["Equal", ["Multiply", 3, "x"], 6],
        ["Divide", "x", "x"],
    ]
    for expr in examples:
        show(expr, simplify(expr))


def demo_groups():
    """Rule groups can be switched off."""
    section("Rule Groups")

    engine = Engine()
    print(f"  Groups: {', '.join(sorted(engine.groups()))}")

    expr = ["Sqrt", ["Power", "x", 6]]
    engine.disable_group("powers")
    print(f"  Without powers: {format_sexpr(engine(expr))}")
    engine.enable_group("powers")
    print(f"  With powers:    {format_sexpr(engine(expr))}")


def demo_custom_rules():
    """Rules from the DSL join the catalogue."""
    section("Custom Rules")

    engine = Engine().load_dsl('''
        [custom]
        @double "f doubles its argument": (f ?x) => (Multiply 2 :x)
        @g-positive: (g ?x) => :x when (! positive? :x)
    ''')

    for text in ["(f (Add y y))", "(g 3)", "(g -3)"]:
        print(f"  {text} => {format_sexpr(engine(E(text)))}")

    print()
    print(engine.to_dsl("custom rules").split("[custom]")[-1].strip())


def demo_tracing():
    """A trace records every rule applied."""
    section("Tracing")

    result, trace = Engine().simplify(E("(Abs (Abs (Negate x)))"), trace=True)
    print(trace.format("chain"))
    print(f"  Rules: {trace.format('rules')}")


def main():
    logging.basicConfig(level=logging.WARNING, format="%(name)s %(levelname)s: %(message)s")

    demo_exact_numbers()
    demo_precision()
    demo_canonical_forms()
    demo_simplification()
    demo_groups()
    demo_custom_rules()
    demo_tracing()


if __name__ == "__main__":
    main()
