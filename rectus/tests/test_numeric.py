"""Tests for the exact numeric tower."""

import decimal
import math
from fractions import Fraction

import pytest

from rectus import numeric
from rectus.numeric import (
    Integer, Rational, Radical, Real,
    ZERO, ONE, NEG_ONE, PI, E, POS_INF, NEG_INF, NAN,
)


class TestConstructors:
    """Tests for rational(), radical() and parse_number()."""

    def test_rational_reduces(self):
        """Fractions are stored in lowest terms."""
        assert numeric.rational(6, 8) == Rational(3, 4)
        assert numeric.rational(-6, 8) == Rational(-3, 4)

    def test_rational_integer_result(self):
        """A denominator that divides out gives an Integer."""
        assert numeric.rational(4, 2) == Integer(2)

    def test_rational_zero_denominator(self):
        """Zero denominator is NaN, not an exception."""
        assert numeric.rational(1, 0) == NAN

    def test_radical_extracts_squares(self):
        """Perfect square factors move into the coefficient."""
        assert numeric.radical(8) == Radical(2, 2, Fraction(2))
        assert numeric.radical(12) == Radical(3, 2, Fraction(2))

    def test_radical_perfect_power(self):
        """Perfect powers collapse to integers."""
        assert numeric.radical(16, 4) == Integer(2)
        assert numeric.radical(9) == Integer(3)

    def test_radical_odd_root_of_negative(self):
        """Odd roots of negative integers are real."""
        assert numeric.radical(-8, 3) == Integer(-2)

    def test_radical_even_root_of_negative(self):
        """Even roots of negative integers have no real value."""
        assert numeric.radical(-4, 2) is None

    def test_radical_lowers_index(self):
        """The index drops when the radicand is itself a power."""
        assert numeric.radical(4, 4) == Radical(2, 2)

    def test_parse_exact_integer(self):
        """Exponent forms without fractional digits stay exact."""
        assert numeric.parse_number("1e999") == Integer(10 ** 999)
        assert numeric.parse_number("-42") == Integer(-42)

    def test_parse_real(self):
        """A decimal point gives a Real, even with no fractional value."""
        assert numeric.parse_number("2.0") == Real(decimal.Decimal("2.0"))
        assert numeric.parse_number("1.5") == Real(decimal.Decimal("1.5"))

    def test_parse_specials(self):
        """NaN and the infinities parse by name."""
        assert numeric.parse_number("NaN") == NAN
        assert numeric.parse_number("Infinity") == POS_INF
        assert numeric.parse_number("-Infinity") == NEG_INF

    def test_parse_garbage_is_nan(self):
        """Unparseable text is NaN."""
        assert numeric.parse_number("abc") == NAN

    def test_from_float_uses_shortest_repr(self):
        """0.1 boxes as the decimal 0.1, not its binary expansion."""
        assert numeric.from_float(0.1) == Real(decimal.Decimal("0.1"))
        assert numeric.from_float(float("inf")) == POS_INF
        assert numeric.from_float(float("nan")) == NAN


class TestAddMultiply:
    """Tests for addition and multiplication."""

    def test_add_rationals(self):
        assert numeric.add(ONE, Rational(1, 2)) == Rational(3, 2)

    def test_add_infinities(self):
        """Opposite infinities cancel to NaN."""
        assert numeric.add(POS_INF, NEG_INF) == NAN
        assert numeric.add(POS_INF, Integer(5)) == POS_INF
        assert numeric.add(NEG_INF, NEG_INF) == NEG_INF

    def test_add_without_closed_form(self):
        """Pi + 1 has no exact closed form."""
        assert numeric.add(PI, ONE) is None

    def test_add_like_radicals(self):
        """Radicals with the same radicand and index add."""
        sqrt2 = Radical(2, 2)
        assert numeric.add(sqrt2, sqrt2) == Radical(2, 2, Fraction(2))

    def test_add_real_contaminates(self):
        """Any Real operand makes the result Real."""
        result = numeric.add(Rational(1, 2), Real(decimal.Decimal("0.5")))
        assert isinstance(result, Real)
        assert result.value == 1

    def test_add_nan(self):
        assert numeric.add(NAN, ONE) == NAN

    def test_multiply_zero_by_infinity(self):
        """0 * inf is NaN."""
        assert numeric.multiply(ZERO, POS_INF) == NAN

    def test_multiply_infinity_signs(self):
        assert numeric.multiply(NEG_ONE, POS_INF) == NEG_INF
        assert numeric.multiply(NEG_INF, NEG_INF) == POS_INF

    def test_multiply_radicals(self):
        """sqrt(2) * sqrt(2) = 2."""
        sqrt2 = Radical(2, 2)
        assert numeric.multiply(sqrt2, sqrt2) == Integer(2)
        assert numeric.multiply(sqrt2, Integer(3)) == Radical(2, 2, Fraction(3))

    def test_multiply_constants(self):
        """Pi * Pi stays symbolic."""
        assert numeric.multiply(PI, PI) is None

    def test_exact_result_too_wide_becomes_real(self):
        """Exact results needing more digits than the precision become Reals."""
        big = Integer(10 ** 30)
        assert isinstance(numeric.add(big, ONE), Real)
        assert numeric.add(big, big) == Integer(2 * 10 ** 30)

    def test_subtract(self):
        assert numeric.subtract(ONE, Rational(1, 3)) == Rational(2, 3)

    def test_real_times_rational_rounds_once(self):
        """The exact product 2/3 is rounded a single time."""
        third = numeric.multiply(Real(decimal.Decimal("2.0")), Rational(1, 3))
        assert third == Real(decimal.Decimal("0.666666666666666666667"))

    def test_real_plus_rational_rounds_once(self):
        context = numeric.make_context(5)
        assert numeric.add(Real(decimal.Decimal("0.1")), Rational(2, 3), context) == Real(decimal.Decimal("0.76667"))


class TestDivide:
    """Tests for reciprocal() and divide()."""

    def test_divide_by_zero(self):
        assert numeric.divide(ONE, ZERO) == NAN

    def test_infinity_over_infinity(self):
        assert numeric.divide(POS_INF, POS_INF) == NAN

    def test_divide_by_infinity(self):
        assert numeric.divide(Integer(5), POS_INF) == ZERO

    def test_reciprocal_of_radical(self):
        """1/sqrt(2) = sqrt(2)/2."""
        assert numeric.reciprocal(Radical(2, 2)) == Radical(2, 2, Fraction(1, 2))

    def test_divide_rationals(self):
        assert numeric.divide(Integer(3), Integer(4)) == Rational(3, 4)

    def test_divide_real_by_integer(self):
        assert numeric.divide(Real(decimal.Decimal("2")), Integer(3)) == Real(decimal.Decimal("0.666666666666666666667"))


class TestPower:
    """Tests for power() and root()."""

    def test_zero_to_zero(self):
        assert numeric.power(ZERO, ZERO) == NAN

    def test_zero_to_negative(self):
        assert numeric.power(ZERO, NEG_ONE) == NAN

    def test_integer_power(self):
        assert numeric.power(Integer(2), Integer(10)) == Integer(1024)

    def test_negative_integer_power(self):
        assert numeric.power(Integer(2), Integer(-2)) == Rational(1, 4)

    def test_perfect_square_root(self):
        assert numeric.power(Integer(4), Rational(1, 2)) == Integer(2)

    def test_irrational_root(self):
        assert numeric.power(Integer(2), Rational(1, 2)) == Radical(2, 2)

    def test_odd_root_of_negative(self):
        assert numeric.power(Integer(-8), Rational(1, 3)) == Integer(-2)

    def test_even_root_of_negative(self):
        """No real square root of -4: the power stays symbolic."""
        assert numeric.power(Integer(-4), Rational(1, 2)) is None

    def test_power_to_infinity(self):
        """Magnitude below one vanishes, above one blows up, one is NaN."""
        assert numeric.power(Rational(1, 2), POS_INF) == ZERO
        assert numeric.power(Integer(2), POS_INF) == POS_INF
        assert numeric.power(ONE, POS_INF) == NAN
        assert numeric.power(Integer(2), NEG_INF) == ZERO

    def test_negative_base_to_infinity(self):
        """A negative base of magnitude above one diverges to +inf."""
        assert numeric.power(Integer(-2), POS_INF) == POS_INF

    def test_infinite_base(self):
        assert numeric.power(POS_INF, ZERO) == NAN
        assert numeric.power(NEG_INF, Integer(3)) == NEG_INF
        assert numeric.power(NEG_INF, Integer(2)) == POS_INF
        assert numeric.power(POS_INF, NEG_ONE) == ZERO

    def test_constant_power(self):
        """Pi^2 has no closed form."""
        assert numeric.power(PI, Integer(2)) is None

    def test_real_power(self):
        result = numeric.power(Real(decimal.Decimal("2.0")), Integer(3))
        assert isinstance(result, Real)
        assert result.value == 8

    def test_one_to_real_power_stays_real(self):
        """A Real operand keeps the result Real, even for 1^x."""
        result = numeric.power(ONE, Real(decimal.Decimal("2.5")))
        assert isinstance(result, Real)
        assert result.value == 1
        assert numeric.power(ONE, Integer(7)) == ONE

    def test_overflow_is_signed_infinity(self):
        """Finite results past the exponent range become infinities, not NaN."""
        assert numeric.power(Real(decimal.Decimal("10")), Real(decimal.Decimal("1E+20"))) == POS_INF
        assert numeric.power(Integer(10), Integer(10 ** 999)) == POS_INF
        assert numeric.power(Integer(-10), Integer(10 ** 20 + 1)) == NEG_INF

    def test_root(self):
        assert numeric.root(Integer(27), 3) == Integer(3)
        assert numeric.root(Integer(27), 0) == NAN


class TestLogarithms:
    """Tests for ln() and log()."""

    def test_ln_special_points(self):
        assert numeric.ln(ONE) == ZERO
        assert numeric.ln(ZERO) == NAN
        assert numeric.ln(E) == ONE
        assert numeric.ln(POS_INF) == POS_INF

    def test_ln_stays_symbolic(self):
        assert numeric.ln(Integer(2)) is None

    def test_ln_real(self):
        result = numeric.ln(Real(decimal.Decimal("2.5")))
        assert float(result.value) == pytest.approx(math.log(2.5))

    def test_exact_log(self):
        assert numeric.log(Integer(8), Integer(2)) == Integer(3)
        assert numeric.log(Rational(1, 8), Integer(2)) == Integer(-3)
        assert numeric.log(Integer(1000), Integer(10)) == Integer(3)

    def test_inexact_log(self):
        assert numeric.log(Integer(10), Integer(2)) is None

    def test_log_of_infinity(self):
        assert numeric.log(POS_INF, Integer(10)) == POS_INF
        assert numeric.log(POS_INF, Rational(1, 2)) == NEG_INF


class TestCompare:
    """Tests for compare(), sign() and absolute()."""

    def test_nan_is_incomparable(self):
        assert numeric.compare(NAN, NAN) is None
        assert numeric.compare(NAN, ONE) is None

    def test_compare_exact(self):
        assert numeric.compare(Rational(1, 3), Rational(1, 2)) == -1
        assert numeric.compare(Integer(2), Integer(2)) == 0

    def test_compare_constant(self):
        assert numeric.compare(PI, Integer(3)) == 1
        assert numeric.compare(E, Integer(3)) == -1

    def test_compare_real(self):
        assert numeric.compare(Rational(1, 3), Real(decimal.Decimal("0.3333"))) == 1

    def test_compare_radical(self):
        assert numeric.compare(Radical(2, 2), Rational(3, 2)) == -1

    def test_sign(self):
        assert numeric.sign(Rational(-1, 2)) == -1
        assert numeric.sign(Real(decimal.Decimal("-0.5"))) == -1
        assert numeric.sign(ZERO) == 0
        assert numeric.sign(PI) == 1
        assert numeric.sign(NAN) is None

    def test_absolute(self):
        assert numeric.absolute(Rational(-3, 4)) == Rational(3, 4)
        assert numeric.absolute(NEG_INF) == POS_INF


class TestDecimals:
    """Tests for decimal conversion and contexts."""

    def test_pi_digits(self):
        assert numeric.to_decimal(PI, numeric.make_context(10)) == decimal.Decimal("3.141592654")

    def test_rational_to_decimal(self):
        assert numeric.to_decimal(Rational(1, 4)) == decimal.Decimal("0.25")

    def test_nan_has_no_decimal(self):
        assert numeric.to_decimal(NAN) is None

    def test_real_rounds_to_precision(self):
        assert numeric.real(decimal.Decimal("1.23456"), numeric.make_context(5)) == Real(decimal.Decimal("1.2346"))

    def test_round_half_even(self):
        """Ties round to the even digit by default."""
        assert numeric.real(decimal.Decimal("2.5"), numeric.make_context(1)).value == 2
        assert numeric.real(decimal.Decimal("3.5"), numeric.make_context(1)).value == 4

    def test_significant_digits(self):
        assert numeric.significant_digits(1000) == 1
        assert numeric.significant_digits(1234) == 4
        assert numeric.significant_digits(0) == 1
