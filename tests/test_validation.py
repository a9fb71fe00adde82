"""Unit tests for phone, email and marketplace value validation."""

import pytest

from rideshare.domain.errors import InvalidArgument
from rideshare.domain.validation import (
    format_currency,
    format_phone_number,
    is_valid_albanian_phone,
    normalize_email,
    normalize_phone,
    validate_price,
    validate_seat_count,
)


class TestFormatPhoneNumber:
    @pytest.mark.parametrize(
        "raw",
        ["0691234567", "069 123 4567", "+355 69 123 4567", "355691234567", "00355691234567"],
    )
    def test_all_forms_normalise_to_international(self, raw):
        assert format_phone_number(raw) == "+355691234567"

    def test_strips_dashes_and_parentheses(self):
        assert format_phone_number("(069) 123-4567") == "+355691234567"

    def test_bare_subscriber_number_gets_prefix(self):
        assert format_phone_number("691234567") == "+355691234567"

    def test_empty_stays_empty(self):
        assert format_phone_number("") == ""


class TestAlbanianPhone:
    def test_accepts_mobile_number(self):
        assert is_valid_albanian_phone("+355691234567")

    def test_accepts_eight_digit_landline(self):
        assert is_valid_albanian_phone("+35542123456")

    def test_rejects_foreign_number(self):
        assert not is_valid_albanian_phone("+393331234567")

    def test_rejects_too_short(self):
        assert not is_valid_albanian_phone("+3556912")

    def test_normalize_raises_for_invalid(self):
        with pytest.raises(InvalidArgument):
            normalize_phone("12ab")

    def test_normalize_returns_formatted(self):
        assert normalize_phone("069 123 4567") == "+355691234567"


class TestEmail:
    def test_normalises_domain_case(self):
        assert normalize_email("ana@Example.COM") == "ana@example.com"

    def test_rejects_garbage(self):
        with pytest.raises(InvalidArgument):
            normalize_email("not-an-email")


class TestMarketplaceValues:
    @pytest.mark.parametrize("seats,ok", [(0, False), (1, True), (4, True), (5, False)])
    def test_seat_count_bounds(self, seats, ok):
        assert validate_seat_count(seats) is ok

    @pytest.mark.parametrize(
        "price,ok", [(0, False), (-10, False), (1, True), (100_000, True), (100_001, False)]
    )
    def test_price_bounds(self, price, ok):
        assert validate_price(price) is ok

    def test_currency_uses_thousands_separator(self):
        assert format_currency(1500) == "1,500 ALL"
