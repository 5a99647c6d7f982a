"""Tests for the default rule catalogue, one rule family at a time."""

import pytest

from rectus import simplify, canonicalize, default_rulebook


class TestCatalogue:
    """Tests for the catalogue's structure."""

    def test_groups(self):
        assert default_rulebook().groups() == {
            "arithmetic", "distribute", "powers", "abs", "trig", "logarithms", "relational"}

    def test_rules_are_named(self):
        assert all(rule.metadata.name for rule in default_rulebook())

    def test_names_are_unique(self):
        names = [rule.metadata.name for rule in default_rulebook()]
        assert len(names) == len(set(names))

    def test_fresh_copies(self):
        book = default_rulebook()
        book.load_dsl("@extra: (f ?x) => :x")
        assert "extra" not in default_rulebook()


class TestLikeTerms:
    """Tests for like-term collection."""

    def test_combine(self):
        assert simplify(["Add", "x", ["Multiply", 2, "x"]]) == ["Multiply", 3, "x"]

    def test_cancel(self):
        assert simplify(["Subtract", "x", "x"]) == 0

    def test_products(self):
        expr = ["Add", ["Multiply", 2, "x", "y"], ["Multiply", 3, "y", "x"]]
        assert simplify(expr) == ["Multiply", 5, "x", "y"]

    def test_constants_are_terms(self):
        assert simplify(["Add", "Pi", "Pi"]) == ["Multiply", 2, "Pi"]

    def test_reciprocals(self):
        assert simplify(["Add", ["Divide", 1, "x"], ["Divide", 1, "x"]]) == ["Divide", 2, "x"]


class TestPowerCombination:
    """Tests for x^a * x^b -> x^(a+b)."""

    def test_combine(self):
        assert simplify(["Multiply", "x", ["Power", "x", 2]]) == ["Power", "x", 3]

    def test_negative_total(self):
        assert simplify(["Divide", "x", ["Power", "x", 3]]) == ["Divide", 1, ["Power", "x", 2]]

    def test_division_by_self_is_kept(self):
        """x/x is undefined at 0, so it does not become 1."""
        assert simplify(["Divide", "x", "x"]) == ["Divide", "x", "x"]

    def test_cancelling_into_a_power_is_kept(self):
        assert simplify(["Divide", ["Power", "x", 2], "x"]) == ["Divide", ["Power", "x", 2], "x"]

    def test_square_roots_are_kept(self):
        """sqrt(x)*sqrt(x) is undefined for negative x."""
        expr = ["Multiply", ["Sqrt", "x"], ["Sqrt", "x"]]
        assert simplify(expr) == canonicalize(expr)

    def test_positive_constant_base(self):
        assert simplify(["Divide", "Pi", "Pi"]) == 1
        assert simplify(["Divide", ["Add", "Pi", 1], ["Add", "Pi", 1]]) == 1


class TestDistribution:
    """Tests for coefficient distribution, expansion and common denominators."""

    def test_coefficient(self):
        assert simplify(["Multiply", 2, ["Add", "x", 1]]) == ["Add", 2, ["Multiply", 2, "x"]]

    def test_expansion_that_cancels(self):
        expr = ["Subtract", ["Power", ["Add", "x", 1], 2], ["Power", "x", 2]]
        assert simplify(expr) == ["Add", 1, ["Multiply", 2, "x"]]

    def test_expansion_without_cancellation_is_kept(self):
        assert simplify(["Power", ["Add", "x", 1], 2]) == ["Power", ["Add", 1, "x"], 2]

    def test_common_factor(self):
        expr = ["Add", ["Multiply", "x", "y"], ["Multiply", ["Add", "x", 1], "y"]]
        assert simplify(expr) == ["Add", "y", ["Multiply", 2, "x", "y"]]

    def test_common_denominator(self):
        expr = ["Subtract", ["Divide", 1, ["Add", "x", 1]], ["Divide", 1, "x"]]
        assert simplify(expr) == ["Negate", ["Divide", 1, ["Multiply", "x", ["Add", 1, "x"]]]]

    def test_shared_denominator(self):
        """Fractions over the same denominator combine even without cancellation."""
        expr = ["Add", ["Divide", "a", "x"], ["Divide", "b", "x"]]
        assert simplify(expr) == ["Divide", ["Add", "a", "b"], "x"]

    def test_shared_denominator_with_other_terms(self):
        expr = ["Add", "c", ["Divide", "a", "x"], ["Divide", "b", "x"]]
        assert simplify(expr) == ["Add", "c", ["Divide", ["Add", "a", "b"], "x"]]


class TestPowers:
    """Tests for double powers and powers of products."""

    def test_sqrt_of_even_power(self):
        assert simplify(["Sqrt", ["Power", "x", 6]]) == ["Power", ["Abs", "x"], 3]

    def test_sqrt_of_fourth_power(self):
        assert simplify(["Sqrt", ["Power", "x", 4]]) == ["Power", "x", 2]

    def test_fourth_root_of_fourth_power(self):
        assert simplify(["Root", ["Power", "x", 4], 4]) == ["Abs", "x"]

    def test_fractional_result_keeps_abs(self):
        assert simplify(["Root", ["Power", "x", 6], 4]) == ["Power", ["Abs", "x"], ["Rational", 3, 2]]

    def test_negated_base(self):
        assert simplify(["Power", ["Negate", "x"], 3]) == ["Negate", ["Power", "x", 3]]

    def test_power_of_quotient(self):
        expr = ["Power", ["Divide", "x", "Pi"], -3]
        assert simplify(expr) == ["Divide", ["Power", "Pi", 3], ["Power", "x", 3]]

    def test_power_of_quotient_of_symbols_is_kept(self):
        """(x/y)^-3 -> y^3/x^3 would be defined at y = 0."""
        expr = ["Power", ["Divide", "x", "y"], -3]
        assert simplify(expr) == canonicalize(expr)


class TestAbs:
    """Tests for absolute value rules."""

    def test_idempotent(self):
        assert simplify(["Abs", ["Abs", "x"]]) == ["Abs", "x"]

    def test_negation(self):
        assert simplify(["Abs", ["Negate", "x"]]) == ["Abs", "x"]

    def test_even_power_absorbs(self):
        assert simplify(["Power", ["Abs", "x"], 4]) == ["Power", "x", 4]

    def test_odd_power_keeps(self):
        assert simplify(["Abs", ["Power", "x", 3]]) == ["Power", ["Abs", "x"], 3]

    def test_abs_of_square(self):
        assert simplify(["Abs", ["Power", "x", 2]]) == ["Power", "x", 2]

    def test_positive_factor(self):
        assert simplify(["Abs", ["Multiply", "Pi", "x"]]) == ["Multiply", "Pi", ["Abs", "x"]]

    def test_literal(self):
        assert simplify(["Abs", -3]) == 3


class TestParity:
    """Tests for even and odd function rules."""

    @pytest.mark.parametrize("f", ["Cos", "Sec", "Cosh", "Sech"])
    def test_even_absorbs_abs(self, f):
        assert simplify([f, ["Abs", "x"]]) == [f, "x"]

    @pytest.mark.parametrize("f", ["Cos", "Sec", "Cosh", "Sech"])
    def test_even_drops_sign(self, f):
        assert simplify([f, ["Negate", "x"]]) == [f, "x"]

    @pytest.mark.parametrize("f", ["Sin", "Tan", "Cot", "Csc", "Arcsin", "Arctan",
                                   "Sinh", "Tanh", "Coth", "Csch"])
    def test_odd_moves_abs_inside(self, f):
        assert simplify(["Abs", [f, "x"]]) == [f, ["Abs", "x"]]

    @pytest.mark.parametrize("f", ["Sin", "Tan", "Cot", "Csc", "Arcsin", "Arctan",
                                   "Sinh", "Tanh", "Coth", "Csch"])
    def test_odd_pulls_sign_out(self, f):
        assert simplify([f, ["Negate", "x"]]) == ["Negate", [f, "x"]]

    def test_coefficient_sign(self):
        assert simplify(["Sin", ["Multiply", -2, "x"]]) == ["Negate", ["Sin", ["Multiply", 2, "x"]]]

    def test_arccos_is_neither(self):
        assert simplify(["Arccos", ["Negate", "x"]]) == ["Arccos", ["Negate", "x"]]


class TestLogarithms:
    """Tests for logarithm and exponential identities."""

    def test_difference_of_logs(self):
        expr = ["Subtract", ["Ln", ["Multiply", "x", "y"]], ["Ln", "x"]]
        assert simplify(expr) == ["Ln", "y"]

    def test_even_power(self):
        assert simplify(["Ln", ["Power", "x", 2]]) == ["Multiply", 2, ["Ln", ["Abs", "x"]]]

    def test_odd_power(self):
        assert simplify(["Ln", ["Power", "x", 3]]) == ["Multiply", 3, ["Ln", "x"]]

    def test_ln_of_exp(self):
        assert simplify(["Ln", ["Exp", "x"]]) == "x"

    def test_exp_of_ln(self):
        assert simplify(["Exp", ["Ln", "x"]]) == "x"

    def test_exp_of_shifted_ln(self):
        expr = ["Exp", ["Add", ["Ln", "x"], "x"]]
        assert simplify(expr) == ["Multiply", "x", ["Power", "ExponentialE", "x"]]

    def test_base_factor(self):
        assert simplify(["Log", ["Multiply", 2, "x"], 2]) == ["Add", 1, ["Log", "x", 2]]

    def test_change_of_base(self):
        expr = ["Divide", ["Log", "a", 2], ["Log", "b", 2]]
        assert simplify(expr) == ["Divide", ["Ln", "a"], ["Ln", "b"]]


class TestRelational:
    """Tests for relation rules."""

    def test_identical_sides(self):
        assert simplify(["Equal", "x", "x"]) == "True"
        assert simplify(["LessEqual", "x", "x"]) == "True"
        assert simplify(["Less", "x", "x"]) == "False"
        assert simplify(["NotEqual", "x", "x"]) == "False"

    def test_common_content(self):
        assert simplify(["Less", ["Multiply", 2, "a"], ["Multiply", 4, "b"]]) == ["Less", "a", ["Multiply", 2, "b"]]
        assert simplify(["Equal", ["Multiply", 3, "x"], 6]) == ["Equal", "x", 2]

    def test_coprime_content_is_kept(self):
        expr = ["Less", ["Multiply", 2, "a"], ["Multiply", 3, "b"]]
        assert simplify(expr) == expr
