"""Tests for the variable type engine.

Parse/format per type, clamp-vs-wrap stepping, date tokens, printf specs
and shell template substitution.
"""

from __future__ import annotations

import unittest
from datetime import date

from listy.variables import (
    VariableDefinition,
    VariableType,
    coerce_literal,
    decrement_value,
    default_value,
    extract_variables,
    format_value,
    increment_value,
    is_valid_value,
    parse_value,
    substitute,
)
from listy.variables.dates import format_date, parse_date, parse_date_range, parse_relative_date
from listy.variables.printf import sprintf

TODAY = date(2025, 1, 10)


def _def(name: str = "X", type_: VariableType = VariableType.INT, **kwargs) -> VariableDefinition:
    return VariableDefinition(name=name, type=type_, **kwargs)


class ParseTests(unittest.TestCase):
    def test_int_parse_rejects_garbage(self) -> None:
        qty = _def("QTY")
        self.assertEqual(parse_value("15", qty), 15)
        self.assertEqual(parse_value(" -3 ", qty), -3)
        self.assertIsNone(parse_value("1x", qty))
        self.assertIsNone(parse_value("", qty))
        self.assertIsNone(parse_value("1.5", qty))

    def test_float_parse(self) -> None:
        price = _def("PRICE", VariableType.FLOAT)
        self.assertEqual(parse_value("0.45", price), 0.45)
        self.assertEqual(parse_value(".5", price), 0.5)
        self.assertIsNone(parse_value("abc", price))
        self.assertIsNone(parse_value("nan", price))

    def test_enum_requires_exact_member(self) -> None:
        kind = _def("TYPE", VariableType.ENUM, range=("call", "put"))
        self.assertEqual(parse_value("put", kind), "put")
        self.assertIsNone(parse_value("PUT", kind))
        self.assertIsNone(parse_value("pu", kind))

    def test_string_always_succeeds(self) -> None:
        symbol = _def("SYMBOL", VariableType.STRING)
        self.assertEqual(parse_value("", symbol), "")
        self.assertEqual(parse_value("TSLA", symbol), "TSLA")

    def test_date_forms(self) -> None:
        exp = _def("EXP", VariableType.DATE)
        self.assertEqual(parse_value("2025-03-21", exp, TODAY), date(2025, 3, 21))
        self.assertEqual(parse_value("3/21/26", exp, TODAY), date(2026, 3, 21))
        self.assertEqual(parse_value("3/21/2027", exp, TODAY), date(2027, 3, 21))
        self.assertEqual(parse_value("3/21", exp, TODAY), date(2025, 3, 21))
        self.assertIsNone(parse_value("2/30", exp, TODAY))
        self.assertIsNone(parse_value("soon", exp, TODAY))


class FormatTests(unittest.TestCase):
    def test_none_formats_to_empty(self) -> None:
        for type_ in VariableType:
            self.assertEqual(format_value(None, _def(type_=type_)), "")

    def test_numbers_use_printf_spec(self) -> None:
        self.assertEqual(format_value(0.5, _def(type_=VariableType.FLOAT, format="%.2f")), "0.50")
        self.assertEqual(format_value(7, _def(format="%03d")), "007")
        self.assertEqual(format_value(7, _def()), "7")

    def test_date_token_pattern(self) -> None:
        exp = _def("EXP", VariableType.DATE, format="MM/dd/yyyy")
        self.assertEqual(format_value(date(2025, 1, 7), exp), "01/07/2025")
        self.assertEqual(format_value(date(2025, 1, 7), _def("EXP", VariableType.DATE)), "1/7")

    def test_parse_format_round_trip(self) -> None:
        qty = _def("QTY")
        self.assertEqual(parse_value(format_value(42, qty), qty), 42)
        exp = _def("EXP", VariableType.DATE, format="yyyy-MM-dd")
        self.assertEqual(parse_value(format_value(date(2025, 6, 1), exp), exp, TODAY), date(2025, 6, 1))


class StepTests(unittest.TestCase):
    def test_int_clamps_at_range(self) -> None:
        qty = _def("QTY", range=(1, 20), step=5)
        self.assertEqual(increment_value(10, qty), 15)
        self.assertEqual(increment_value(18, qty), 20)
        self.assertEqual(decrement_value(3, qty), 1)
        self.assertEqual(increment_value(10, qty, 3), 20)

    def test_float_step_avoids_drift(self) -> None:
        price = _def("PRICE", VariableType.FLOAT, step=0.05)
        self.assertEqual(increment_value(0.1, price), 0.15)
        self.assertEqual(decrement_value(0.1, price, 2), 0.0)

    def test_enum_wraps_both_ways(self) -> None:
        kind = _def("TYPE", VariableType.ENUM, range=("call", "put"))
        self.assertEqual(increment_value("put", kind), "call")
        self.assertEqual(decrement_value("call", kind), "put")
        self.assertEqual(increment_value("bogus", kind), "call")

    def test_date_clamps_without_wrap(self) -> None:
        exp = _def("EXP", VariableType.DATE, range="2025-01-01..2025-01-31", step=7)
        self.assertEqual(increment_value(date(2025, 1, 10), exp), date(2025, 1, 17))
        self.assertEqual(increment_value(date(2025, 1, 28), exp), date(2025, 1, 31))
        self.assertEqual(decrement_value(date(2025, 1, 3), exp), date(2025, 1, 1))

    def test_string_step_is_identity(self) -> None:
        self.assertEqual(increment_value("A", _def(type_=VariableType.STRING)), "A")


class ValidityAndDefaultsTests(unittest.TestCase):
    def test_is_valid_value(self) -> None:
        qty = _def("QTY", range=(1, 10))
        self.assertTrue(is_valid_value(5, qty))
        self.assertFalse(is_valid_value(11, qty))
        self.assertFalse(is_valid_value(True, qty))
        self.assertFalse(is_valid_value(None, qty))
        symbol = _def("SYMBOL", VariableType.STRING, validate="[A-Z]+")
        self.assertTrue(is_valid_value("IWM", symbol))
        self.assertFalse(is_valid_value("iwm", symbol))

    def test_default_prefers_value_then_default(self) -> None:
        self.assertEqual(default_value(_def(value=3, default=1)), 3)
        self.assertEqual(default_value(_def(default=1)), 1)
        self.assertEqual(default_value(_def()), 0)
        kind = _def("TYPE", VariableType.ENUM, range=("call", "put"))
        self.assertEqual(default_value(kind), "call")

    def test_coerce_literal_is_lenient(self) -> None:
        self.assertEqual(coerce_literal("2.9", _def()), 2)
        self.assertEqual(coerce_literal("oops", _def()), 0)
        exp = _def("EXP", VariableType.DATE)
        self.assertEqual(coerce_literal("today+3", exp, TODAY), date(2025, 1, 13))
        self.assertEqual(coerce_literal(date(2025, 2, 1), exp, TODAY), date(2025, 2, 1))


class DateHelperTests(unittest.TestCase):
    def test_format_tokens_longest_first(self) -> None:
        self.assertEqual(format_date(date(2025, 11, 5), "M-MM-d-dd-yy-yyyy"), "11-11-5-05-25-2025")
        self.assertEqual(format_date(None, "M/d"), "")

    def test_parse_date_two_digit_years(self) -> None:
        self.assertEqual(parse_date("1/2/49"), date(2049, 1, 2))
        self.assertEqual(parse_date("1/2/99"), date(1999, 1, 2))

    def test_relative_dates(self) -> None:
        self.assertEqual(parse_relative_date("today", TODAY), TODAY)
        self.assertEqual(parse_relative_date("today - 10", TODAY), date(2024, 12, 31))
        self.assertIsNone(parse_relative_date("tomorrow", TODAY))

    def test_date_range_forms(self) -> None:
        self.assertEqual(
            parse_date_range("2025-01-01..2025-02-01"),
            (date(2025, 1, 1), date(2025, 2, 1)),
        )
        self.assertEqual(parse_date_range(["today", "today+1"], TODAY), (TODAY, date(2025, 1, 11)))
        self.assertIsNone(parse_date_range("2025-01-01"))


class SprintfTests(unittest.TestCase):
    def test_first_conversion_with_literals(self) -> None:
        self.assertEqual(sprintf("$%.2f", 1.5), "$1.50")
        self.assertEqual(sprintf("%d shares", 3.9), "3 shares")
        self.assertEqual(sprintf("%-4d|", 7), "7   |")
        self.assertEqual(sprintf("%x", 255), "ff")

    def test_no_conversion_or_empty_format(self) -> None:
        self.assertEqual(sprintf("plain", 1), "plain")
        self.assertEqual(sprintf(None, 1), "1")
        self.assertEqual(sprintf("%d", "abc"), "abc")


class TemplateTests(unittest.TestCase):
    def test_plain_and_braced_names(self) -> None:
        formatted = {"SYMBOL": "TSLA", "QTY": "5"}
        self.assertEqual(substitute("robin shares quote $SYMBOL", formatted), "robin shares quote TSLA")
        self.assertEqual(substitute("${QTY}x${SYMBOL}", formatted), "5xTSLA")

    def test_unknown_names_are_left_alone(self) -> None:
        self.assertEqual(substitute("echo $HOME $SYMBOL", {"SYMBOL": "IWM"}), "echo $HOME IWM")

    def test_input_placeholder(self) -> None:
        self.assertEqual(substitute("grep $INPUT ${INPUT}", {}, "foo"), "grep foo foo")

    def test_typed_date_override(self) -> None:
        formatted = {"EXP": "1/17"}
        raw = {"EXP": date(2025, 1, 17)}
        self.assertEqual(substitute("x $EXP:date:yyyy-MM-dd", formatted, raw_values=raw), "x 2025-01-17")
        self.assertEqual(substitute("x ${EXP:date:yyMMdd}", formatted, raw_values=raw), "x 250117")

    def test_extract_variables_first_seen_order(self) -> None:
        self.assertEqual(extract_variables("$B ${A} $B $C"), ["A", "B", "C"])


if __name__ == "__main__":
    unittest.main()
