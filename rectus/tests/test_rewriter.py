"""Tests for pattern matching and instantiation."""

import pytest

from rectus import E, Num, Sym, Apply, Bindings, NoMatch, wrap_bindings
from rectus import numeric
from rectus.numeric import Integer, Rational
from rectus.expr import TRUE, FALSE
from rectus.rewriter import (
    match, instantiate, compile_template, free_in, extend_bindings, lookup,
    nary_fold, unary_only, truth,
    ARITHMETIC_PRELUDE, PREDICATE_PRELUDE, FULL_PRELUDE, NO_PRELUDE,
    PatternVar, RestVar,
)


def bound(pattern, expr):
    """Match a DSL pattern against a DSL expression, as a dict or None."""
    result = match(compile_template(pattern), E(expr), [])
    if result == "failed":
        return None
    return dict((name, value) for name, value in result)


class TestFreeIn:
    """Tests for free_in."""

    def test_symbol_in_itself(self):
        assert free_in(Sym("x"), Sym("x")) == True

    def test_symbol_in_compound(self):
        assert free_in(Sym("x"), E("(Add (Multiply 2 x) 1)")) == True
        assert free_in(Sym("z"), E("(Add (Multiply 2 x) 1)")) == False

    def test_symbol_not_in_number(self):
        assert free_in(Sym("x"), Num(Integer(42))) == False


class TestExtendBindings:
    """Tests for extend_bindings and lookup."""

    def test_extend_empty(self):
        assert extend_bindings("x", Sym("a"), []) == [["x", Sym("a")]]

    def test_consistent_rebinding(self):
        bindings = [["x", Sym("a")]]
        assert extend_bindings("x", Sym("a"), bindings) == bindings

    def test_inconsistent_rebinding(self):
        assert extend_bindings("x", Sym("b"), [["x", Sym("a")]]) == "failed"

    def test_extend_failed(self):
        assert extend_bindings("x", Sym("a"), "failed") == "failed"

    def test_lookup_unbound_is_symbol(self):
        assert lookup("x", []) == Sym("x")
        assert lookup("x", [["x", Num(Integer(1))]]) == Num(Integer(1))


class TestCompileTemplate:
    """Tests for template compilation."""

    def test_atoms_are_boxed(self):
        assert compile_template("(Add x 1)") == E("(Add x 1)")

    def test_pattern_variables(self):
        template = compile_template("(Power ?x ?n:const)")
        assert template.args == (PatternVar("x"), PatternVar("n", "const"))

    def test_rest_variable(self):
        template = compile_template("(Add ?first ?rest...)")
        assert template.args[1] == RestVar("rest")

    def test_rest_must_be_last(self):
        with pytest.raises(ValueError):
            compile_template("(f ?xs... ?y)")


class TestMatch:
    """Tests for structural matching."""

    def test_simple_match(self):
        assert bound("(Add ?x ?y)", "(Add a b)") == {"x": Sym("a"), "y": Sym("b")}

    def test_head_mismatch(self):
        assert bound("(Add ?x ?y)", "(Multiply a b)") is None

    def test_arity_mismatch(self):
        assert bound("(Add ?x ?y)", "(Add a b c)") is None

    def test_repeated_variable(self):
        assert bound("(f ?x ?x)", "(f a a)") == {"x": Sym("a")}
        assert bound("(f ?x ?x)", "(f a b)") is None

    def test_literal(self):
        assert bound("(Add ?x 0)", "(Add y 0)") == {"x": Sym("y")}
        assert bound("(Add ?x 0)", "(Add y 1)") is None

    def test_const_constraint(self):
        assert bound("(f ?n:const)", "(f 2)") == {"n": Num(Integer(2))}
        assert bound("(f ?n:const)", "(f x)") is None

    def test_var_constraint(self):
        assert bound("(f ?v:var)", "(f x)") == {"v": Sym("x")}
        assert bound("(f ?v:var)", "(f 2)") is None

    def test_free_constraint(self):
        assert bound("(f ?v:var ?e:free(v))", "(f x (Add y 1))") is not None
        assert bound("(f ?v:var ?e:free(v))", "(f x (Add x 1))") is None

    def test_rest(self):
        assert bound("(Add ?first ?rest...)", "(Add a b c)") == {
            "first": Sym("a"), "rest": (Sym("b"), Sym("c"))}

    def test_empty_rest(self):
        assert bound("(Add ?first ?rest...)", "(Add a)") == {"first": Sym("a"), "rest": ()}

    def test_constrained_rest(self):
        assert bound("(f ?xs:const...)", "(f 1 2)") is not None
        assert bound("(f ?xs:const...)", "(f 1 x)") is None

    def test_nested(self):
        assert bound("(Abs (Abs ?x))", "(Abs (Abs (Sin y)))") == {"x": E("(Sin y)")}


class TestInstantiate:
    """Tests for skeleton instantiation."""

    def test_substitute(self):
        bindings = [["x", Sym("a")]]
        assert instantiate(compile_template("(g :x)"), bindings) == E("(g a)")

    def test_splice(self):
        bindings = [["x", Sym("a")], ["rest", (Sym("b"), Sym("c"))]]
        assert instantiate(compile_template("(g :x :rest...)"), bindings) == E("(g a b c)")

    def test_unbound_reference_is_symbol(self):
        assert instantiate(compile_template(":y"), []) == Sym("y")

    def test_compute(self):
        bindings = [["a", Num(Integer(2))]]
        skeleton = compile_template("(! Add :a 1)")
        assert instantiate(skeleton, bindings, ARITHMETIC_PRELUDE) == Num(Integer(3))

    def test_compute_without_prelude(self):
        """Unknown operators leave the computation as an application."""
        bindings = [["a", Num(Integer(2))]]
        skeleton = compile_template("(! Add :a 1)")
        assert instantiate(skeleton, bindings, NO_PRELUDE) == E("(Add 2 1)")

    def test_compute_predicate(self):
        bindings = [["a", Num(Integer(2))]]
        assert instantiate(compile_template("(! > :a 1)"), bindings, FULL_PRELUDE) == TRUE
        assert instantiate(compile_template("(! < :a 1)"), bindings, FULL_PRELUDE) == FALSE

    def test_compute_declines_on_symbols(self):
        bindings = [["a", Sym("x")]]
        assert instantiate(compile_template("(! Negate :a)"), bindings, FULL_PRELUDE) == E("(Negate x)")


class TestBindings:
    """Tests for the Bindings wrapper and NoMatch."""

    def test_wrap_failed(self):
        assert wrap_bindings("failed") is NoMatch

    def test_no_match_is_falsy(self):
        assert not NoMatch
        assert NoMatch.get("x", 1) == 1
        assert "x" not in NoMatch
        assert len(NoMatch) == 0
        with pytest.raises(KeyError):
            NoMatch["x"]

    def test_bindings_access(self):
        b = wrap_bindings([["x", Sym("a")], ["n", Num(Integer(2))]])
        assert b
        assert b["x"] == Sym("a")
        assert b.get("missing") is None
        assert "n" in b
        assert len(b) == 2
        assert b.to_dict() == {"x": Sym("a"), "n": Num(Integer(2))}

    def test_empty_bindings_are_truthy(self):
        """A match that binds nothing still succeeded."""
        assert Bindings([])

    def test_bindings_equality(self):
        assert Bindings([["x", Sym("a")]]) == Bindings([["x", Sym("a")]])
        assert Bindings([["x", Sym("a")]]) != Bindings([["x", Sym("b")]])


class TestPreludes:
    """Tests for fold functions."""

    def test_nary_identity(self):
        add = nary_fold(numeric.ZERO, numeric.add)
        assert add([], numeric.DEFAULT_CONTEXT) == Num(numeric.ZERO)

    def test_nary_declines_on_symbols(self):
        add = nary_fold(numeric.ZERO, numeric.add)
        assert add([Num(Integer(1)), Sym("x")], numeric.DEFAULT_CONTEXT) is None

    def test_unary_only(self):
        neg = unary_only(numeric.negate)
        assert neg([Num(Integer(3))], numeric.DEFAULT_CONTEXT) == Num(Integer(-3))
        assert neg([Num(Integer(3)), Num(Integer(4))], numeric.DEFAULT_CONTEXT) is None

    def test_exact_division(self):
        divide = ARITHMETIC_PRELUDE["Divide"]
        assert divide([Num(Integer(1)), Num(Integer(3))], numeric.DEFAULT_CONTEXT) == Num(Rational(1, 3))

    def test_parity_predicates(self):
        ctx = numeric.DEFAULT_CONTEXT
        assert PREDICATE_PRELUDE["even-numerator?"]([Num(Rational(2, 3))], ctx) == True
        assert PREDICATE_PRELUDE["odd-denominator?"]([Num(Rational(1, 2))], ctx) == False
        assert PREDICATE_PRELUDE["even?"]([Sym("x")], ctx) == False

    def test_sign_predicates(self):
        ctx = numeric.DEFAULT_CONTEXT
        assert PREDICATE_PRELUDE["negative?"]([Num(Integer(-2))], ctx) == True
        assert PREDICATE_PRELUDE["positive?"]([Num(numeric.PI)], ctx) == True

    def test_nan_comparisons_fail(self):
        ctx = numeric.DEFAULT_CONTEXT
        assert PREDICATE_PRELUDE["="]([Num(numeric.NAN), Num(numeric.NAN)], ctx) == False

    def test_truth(self):
        assert truth(TRUE) == True
        assert truth(FALSE) == False
        assert truth(Num(Integer(0))) == False
        assert truth(Num(Integer(2))) == True
        assert truth(E("(f x)")) == False
