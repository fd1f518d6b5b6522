"""Tests for text folding, Spanish amounts and date helpers."""

from datetime import date

from boe_explorer.core.money import format_eur_amount, parse_spanish_amount
from boe_explorer.core.text import collapse_whitespace, contains_normalized, fold, normalize, title_name
from boe_explorer.core.time_utils import is_weekend, recent_business_days
from boe_explorer.core.utils import parse_date_maybe, to_date


def test_normalize_maps_accents():
    assert normalize("García Muñoz") == "Garcia Munoz"
    assert fold("RESOLUCIÓN de la Dirección") == "resolucion de la direccion"
    assert normalize(None) == ""


def test_contains_normalized_ignores_case_and_accents():
    assert contains_normalized("Ministerio de Educación", "EDUCACION")
    assert not contains_normalized("Ministerio de Defensa", "educacion")


def test_collapse_whitespace_and_title_name():
    assert collapse_whitespace("  a \n\t b  ") == "a b"
    assert title_name("GARCIA LOPEZ JUAN") == "Garcia Lopez Juan"


def test_parse_spanish_amount_formats():
    assert parse_spanish_amount("1.234.567,89") == 1234567.89
    assert parse_spanish_amount("5.785,12 euros") == 5785.12
    assert parse_spanish_amount("3.000 €") == 3000.0
    assert parse_spanish_amount("12,5") == 12.5
    assert parse_spanish_amount(42) == 42.0


def test_parse_spanish_amount_unknown_is_none():
    assert parse_spanish_amount("no consta") is None
    assert parse_spanish_amount("") is None
    assert parse_spanish_amount(None) is None
    assert parse_spanish_amount(float("nan")) is None


def test_format_eur_amount():
    assert format_eur_amount(1234567.891) == "1.234.567,89 €"
    assert format_eur_amount(None) == "No consta"


def test_parse_date_maybe_is_day_first():
    assert parse_date_maybe("10/02/2026").date() == date(2026, 2, 10)
    assert parse_date_maybe("2026-02-10").date() == date(2026, 2, 10)
    assert parse_date_maybe("not a date") is None
    assert to_date("2024-06-24") == date(2024, 6, 24)
    assert to_date(None) is None


def test_recent_business_days_skips_weekends():
    # 2024-06-24 is a Monday
    days = recent_business_days(3, until=date(2024, 6, 24))
    assert days == [date(2024, 6, 20), date(2024, 6, 21), date(2024, 6, 24)]
    assert is_weekend(date(2024, 6, 22))
    assert not is_weekend(date(2024, 6, 24))
