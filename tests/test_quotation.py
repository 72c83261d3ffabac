"""Unit tests for the quotation model and its computations."""

import json
from decimal import Decimal

import pytest

from quotation import (
    CUSTOM_UNIT,
    ItemEntryError,
    LineItem,
    Quotation,
    QuotationRecord,
    QuoteSession,
    RecordError,
    format_amount,
    format_quantity,
    next_quote_number,
    parse_decimal,
    today,
)


def _item(qty, rate, description="Pipe", unit="NOS"):
    return LineItem(description=description, quantity=Decimal(qty), unit=unit, unit_rate=Decimal(rate))


def _filled_session():
    state = QuoteSession()
    state.update_field("customer_name", "Acme")
    state.update_field("address", "12 Main Road")
    state.update_field("mobile_number", "9876543210")
    state.update_field("quote_number", "QT-2024-007")
    return state


# ---------------------------------------------------------------------------
# Amounts and totals
# ---------------------------------------------------------------------------


def test_amount_is_quantity_times_rate():
    assert _item("3", "100").amount == Decimal("300.00")
    assert _item("2.5", "19.99").amount == Decimal("49.98")


def test_amount_rounds_half_away_from_zero():
    # 1.005 and 2.675 misround with binary floats
    assert _item("1", "1.005").amount == Decimal("1.01")
    assert _item("1", "2.675").amount == Decimal("2.68")
    assert _item("0.5", "0.01").amount == Decimal("0.01")


def test_amount_follows_edits():
    item = _item("2", "10")
    assert item.amount == Decimal("20.00")
    item.quantity = Decimal("4")
    assert item.amount == Decimal("40.00")
    item.unit_rate = Decimal("0.25")
    assert item.amount == Decimal("1.00")


def test_grand_total_recomputed_on_every_call():
    q = Quotation()
    assert q.grand_total() == Decimal("0.00")
    q.items.append(_item("3", "100"))
    q.items.append(_item("1.5", "10.10"))
    assert q.grand_total() == Decimal("315.15")
    q.items.pop(0)
    assert q.grand_total() == Decimal("15.15")


def test_format_amount_groupings():
    assert format_amount(Decimal("1234567.891")) == "12,34,567.89"
    assert format_amount(Decimal("100000")) == "1,00,000.00"
    assert format_amount(Decimal("999")) == "999.00"
    assert format_amount(Decimal("-1234.5")) == "-1,234.50"
    assert format_amount(Decimal("1234567.89"), "western") == "1,234,567.89"


def test_format_quantity_drops_trailing_zeros():
    assert format_quantity(Decimal("3.00")) == "3"
    assert format_quantity(Decimal("300")) == "300"
    assert format_quantity(Decimal("2.50")) == "2.5"


def test_parse_decimal_is_lenient():
    assert parse_decimal("12.5") == Decimal("12.5")
    assert parse_decimal("") == Decimal("0")
    assert parse_decimal("abc") == Decimal("0")
    assert parse_decimal("nan") == Decimal("0")
    assert parse_decimal("1e30") == Decimal("0")
    assert parse_decimal("999999999.99") == Decimal("999999999.99")


def test_largest_accepted_values_still_total():
    item = _item("999999999", "999999999")
    q = Quotation(items=[item, item])
    assert q.grand_total() == Decimal("1999999996000000002.00")
    assert format_amount(q.grand_total(), "western") == "1,999,999,996,000,000,002.00"


# ---------------------------------------------------------------------------
# Fields and validation
# ---------------------------------------------------------------------------


def test_fresh_quotation_defaults():
    q = Quotation()
    assert q.date == today()
    assert q.validity_days == "7"
    assert q.show_title_heading is True
    assert q.items == []


def test_validation_reports_every_error():
    state = QuoteSession()
    state.update_field("mobile_number", "12345")
    assert state.validate() is False
    assert set(state.errors) == {"customer_name", "address", "mobile_number", "quote_number"}
    assert state.errors["mobile_number"] == "Please enter a valid 10-digit mobile number"

    state.update_field("mobile_number", "9876543210")
    assert state.validate() is False
    assert set(state.errors) == {"customer_name", "address", "quote_number"}


def test_validation_trims_mobile_number():
    state = _filled_session()
    state.update_field("mobile_number", "  9876543210 ")
    assert state.validate() is True
    assert state.errors == {}


@pytest.mark.parametrize("mobile", ["98765 43210", "+919876543210", "98765432101", "abcdefghij"])
def test_validation_rejects_malformed_mobile(mobile):
    state = _filled_session()
    state.update_field("mobile_number", mobile)
    assert state.validate() is False
    assert list(state.errors) == ["mobile_number"]


def test_update_field_clears_that_fields_error():
    state = QuoteSession()
    state.validate()
    state.update_field("customer_name", "Acme")
    assert "customer_name" not in state.errors
    assert "address" in state.errors


def test_update_field_rejects_unknown_field():
    with pytest.raises(KeyError):
        QuoteSession().update_field("discount", "10")


def test_first_quote_number_becomes_base():
    state = QuoteSession()
    state.update_field("quote_number", "QT-1")
    state.update_field("quote_number", "QT-5")
    assert state.base_quote_number == "QT-1"
    assert state.quotation.quote_number == "QT-5"


# ---------------------------------------------------------------------------
# Quote numbers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("current, expected", [
    ("QT-2024-007", "QT-2024-008"),
    ("42", "43"),
    ("099", "100"),
    ("INV9", "INV10"),
    ("ABC", "ABC-1"),
])
def test_next_quote_number(current, expected):
    assert next_quote_number(current, current) == expected


def test_next_quote_number_falls_back_to_base():
    assert next_quote_number("", "Q-10") == "Q-11"
    assert next_quote_number("", "") == ""


def test_session_next_quote_number_uses_current():
    state = QuoteSession()
    state.update_field("quote_number", "Q-1")
    state.update_field("quote_number", "Q-7")
    assert state.next_quote_number() == "Q-8"


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("description, qty, rate", [
    ("", "2", "10"),
    ("   ", "2", "10"),
    ("Pipe", "0", "10"),
    ("Pipe", "2", "0"),
])
def test_add_item_rejects_incomplete_entry(description, qty, rate):
    state = QuoteSession()
    state.update_draft(description, Decimal(qty), "NOS", Decimal(rate))
    with pytest.raises(ItemEntryError, match="Please fill in all required item fields"):
        state.add_item()
    assert state.quotation.items == []
    assert state.draft.description == description


def test_add_item_rejects_negative_values():
    state = QuoteSession()
    state.update_draft("Pipe", Decimal("-1"), "NOS", Decimal("10"))
    with pytest.raises(ItemEntryError):
        state.add_item()


def test_add_item_rejects_oversized_values():
    state = QuoteSession()
    state.update_draft("Pipe", Decimal("1e30"), "NOS", Decimal("1"))
    with pytest.raises(ItemEntryError, match="must be below"):
        state.add_item()
    assert state.quotation.items == []


def test_add_item_appends_and_resets_draft():
    state = QuoteSession()
    state.update_draft("Cement", Decimal("2"), CUSTOM_UNIT, Decimal("350"), custom_unit="TON")
    item = state.add_item()
    assert item.unit == "TON"
    assert item.amount == Decimal("700.00")
    assert state.quotation.items == [item]
    draft = state.draft
    assert (draft.description, draft.quantity, draft.unit, draft.custom_unit, draft.unit_rate) == (
        "", Decimal("0"), "", "", Decimal("0"),
    )
    assert draft.amount == Decimal("0.00")


def test_changing_unit_discards_custom_unit():
    state = QuoteSession()
    state.update_draft("Cement", Decimal("2"), CUSTOM_UNIT, Decimal("350"), custom_unit="TON")
    state.update_draft("Cement", Decimal("2"), "BAG", Decimal("350"), custom_unit="TON")
    assert state.draft.custom_unit == ""
    assert state.add_item().unit == "BAG"


def test_remove_item_keeps_order():
    state = QuoteSession()
    for name in ("a", "b", "c"):
        state.update_draft(name, Decimal("1"), "NOS", Decimal("1"))
        state.add_item()
    state.remove_item(1)
    assert [i.description for i in state.quotation.items] == ["a", "c"]


def test_remove_item_out_of_range_leaves_items():
    state = QuoteSession()
    state.update_draft("a", Decimal("1"), "NOS", Decimal("1"))
    state.add_item()
    for index in (1, -1):
        with pytest.raises(IndexError):
            state.remove_item(index)
    assert len(state.quotation.items) == 1


# ---------------------------------------------------------------------------
# Embedded record
# ---------------------------------------------------------------------------


def test_record_materializes_defaults_for_missing_fields():
    q = QuotationRecord.from_json(json.dumps({"customer_name": "Acme", "quote_number": "Q-1"})).materialize()
    assert q.customer_name == "Acme"
    assert q.quote_number == "Q-1"
    assert q.date == today()
    assert q.validity_days == "7"
    assert q.items == []
    assert q.show_title_heading is True


def test_record_recomputes_item_amounts():
    blob = json.dumps({"items": [{"description": "Pipe", "quantity": 3, "unit": "MTR", "unit_rate": "100", "amount": "1"}]})
    q = QuotationRecord.from_json(blob).materialize()
    assert q.items[0].amount == Decimal("300.00")


def test_record_keeps_false_title_flag(acme_quotation):
    q = QuotationRecord.from_json(acme_quotation.dumps_record()).materialize()
    assert q == acme_quotation
    assert q.show_title_heading is False


@pytest.mark.parametrize("payload", [
    [],
    {"items": "Pipe"},
    {"items": ["Pipe"]},
    {"items": [{"description": "Pipe", "quantity": "three", "unit_rate": "1"}]},
    {"items": [{"description": "Pipe", "quantity": True, "unit_rate": "1"}]},
    {"items": [{"description": "Pipe", "quantity": "-1", "unit_rate": "1"}]},
    {"customer_name": 12},
    {"show_title_heading": "yes"},
    {"items": [{"quantity": "1", "unit_rate": "1"}]},
    {"items": [{"description": "  ", "quantity": "1", "unit_rate": "1"}]},
    {"items": [{"description": "Pipe", "quantity": "100000000000000000000000000", "unit_rate": "1"}]},
])
def test_record_rejects_wrong_shapes(payload):
    with pytest.raises(RecordError):
        QuotationRecord.from_json(json.dumps(payload))


def test_record_rejects_invalid_json():
    with pytest.raises(RecordError, match="invalid quotation data"):
        QuotationRecord.from_json("{not json")


def test_load_sets_base_quote_number(acme_quotation):
    state = QuoteSession()
    state.update_field("quote_number", "OLD-1")
    state.load(acme_quotation)
    assert state.base_quote_number == "QT-2024-007"
    state.load(Quotation())
    assert state.base_quote_number == ""


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


def test_submit_renders_before_reset():
    state = _filled_session()
    state.update_draft("Pipe", Decimal("3"), "MTR", Decimal("100"))
    state.add_item()
    seen = []

    def render(q):
        seen.append((q.customer_name, q.quote_number, len(q.items)))
        assert state.quotation.customer_name == "Acme"
        return b"%PDF"

    assert state.submit(render) == b"%PDF"
    assert seen == [("Acme", "QT-2024-007", 1)]
    assert state.quotation.customer_name == ""
    assert state.quotation.items == []
    assert state.quotation.quote_number == "QT-2024-008"
    assert state.base_quote_number == "QT-2024-008"
    assert state.errors == {}


def test_submit_failed_render_keeps_record():
    state = _filled_session()
    state.update_draft("Pipe", Decimal("3"), "MTR", Decimal("100"))
    state.add_item()

    def render(q):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        state.submit(render)
    assert state.quotation.customer_name == "Acme"
    assert state.quotation.quote_number == "QT-2024-007"


def test_submit_requires_items():
    state = _filled_session()
    with pytest.raises(ItemEntryError):
        state.submit(lambda q: b"")
    assert state.quotation.customer_name == "Acme"


def test_submit_requires_valid_fields():
    state = QuoteSession()
    with pytest.raises(ValueError):
        state.submit(lambda q: b"")
    assert "customer_name" in state.errors
