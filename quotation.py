from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date as _date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

UNIT_CHOICES: tuple[str, ...] = ("NOS", "KG", "SQFT", "MTR", "LTR", "SET", "BAG")
CUSTOM_UNIT = "custom"
DEFAULT_VALIDITY_DAYS = "7"
DATE_FORMAT = "%d/%m/%Y"

CENT = Decimal("0.01")
ZERO = Decimal("0")
# Largest power of ten accepted for a quantity or rate.
MAX_EXPONENT = 9
MOBILE_PATTERN = re.compile(r"^\d{10}$")
TRAILING_DIGITS = re.compile(r"(\d+)$")

TEXT_FIELDS: tuple[str, ...] = (
    "customer_name",
    "address",
    "mobile_number",
    "quote_number",
    "date",
    "validity_days",
    "requirements",
    "prepared_by",
    "sales_person",
)


class ItemEntryError(ValueError):
    """Raised when the item-entry fields cannot be turned into a line item."""


class RecordError(ValueError):
    """Raised when an embedded quotation record has the wrong shape."""


# ---------------------------------------------------------------------------
# Money helpers
# ---------------------------------------------------------------------------


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{value!r} is not a number")
    if isinstance(value, Decimal):
        number = value
    else:
        if isinstance(value, float):
            value = repr(value)
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"{value!r} is not a number")
    if not number.is_finite():
        raise ValueError(f"{value!r} is not a number")
    return number


def bounded(number: Decimal) -> Decimal:
    """Reject quantities and rates too large for cent-exact amounts."""
    if number and number.adjusted() > MAX_EXPONENT:
        raise ValueError(f"{number} is too large")
    return number


def parse_decimal(raw: Any, default: Decimal = ZERO) -> Decimal:
    """Lenient form parsing: blanks and garbage become ``default``."""
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return bounded(to_decimal(raw))
    except ValueError:
        return default


def money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _group_indian(whole: str) -> str:
    if len(whole) <= 3:
        return whole
    head, tail = whole[:-3], whole[-3:]
    groups: List[str] = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_amount(value: Decimal, grouping: str = "indian") -> str:
    """Format money with two decimals and thousands grouping.

    ``indian`` groups as 12,34,567.89 and ``western`` as 1,234,567.89.
    """
    amount = money(to_decimal(value))
    if grouping == "western":
        return f"{amount:,.2f}"
    sign = "-" if amount < 0 else ""
    whole, frac = f"{abs(amount):.2f}".split(".")
    return f"{sign}{_group_indian(whole)}.{frac}"


def format_quantity(value: Decimal) -> str:
    return f"{to_decimal(value).normalize():f}"


def today() -> str:
    return _date.today().strftime(DATE_FORMAT)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class LineItem:
    description: str
    quantity: Decimal
    unit: str
    unit_rate: Decimal

    @property
    def amount(self) -> Decimal:
        return money(self.quantity * self.unit_rate)

    def to_record(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "quantity": str(self.quantity),
            "unit": self.unit,
            "unit_rate": str(self.unit_rate),
            "amount": str(self.amount),
        }


@dataclass
class Quotation:
    customer_name: str = ""
    address: str = ""
    mobile_number: str = ""
    quote_number: str = ""
    date: str = field(default_factory=today)
    validity_days: str = DEFAULT_VALIDITY_DAYS
    requirements: str = ""
    prepared_by: str = ""
    sales_person: str = ""
    items: List[LineItem] = field(default_factory=list)
    show_title_heading: bool = True

    def grand_total(self) -> Decimal:
        return money(sum((item.amount for item in self.items), ZERO))

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {name: getattr(self, name) for name in TEXT_FIELDS}
        record["items"] = [item.to_record() for item in self.items]
        record["show_title_heading"] = bool(self.show_title_heading)
        return record

    def dumps_record(self) -> str:
        return json.dumps(self.to_record(), separators=(",", ":"))


@dataclass
class ItemDraft:
    """Item-entry scratch fields shown above the items table."""

    description: str = ""
    quantity: Decimal = ZERO
    unit: str = ""
    custom_unit: str = ""
    unit_rate: Decimal = ZERO

    @property
    def amount(self) -> Decimal:
        return money(self.quantity * self.unit_rate)

    def set_unit(self, unit: str) -> None:
        if unit != self.unit:
            self.custom_unit = ""
        self.unit = unit

    def resolved_unit(self) -> str:
        return self.custom_unit.strip() if self.unit == CUSTOM_UNIT else self.unit


# ---------------------------------------------------------------------------
# Embedded record codec
# ---------------------------------------------------------------------------


def _text(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise RecordError(f"{key} must be text, got {type(value).__name__}")
    return value


def _item_from_record(index: int, raw: Any) -> LineItem:
    if not isinstance(raw, dict):
        raise RecordError(f"item {index} must be an object")
    description = _text(raw, "description") or ""
    if not description.strip():
        raise RecordError(f"item {index}: description is required")
    unit = _text(raw, "unit") or ""
    try:
        quantity = bounded(to_decimal(raw.get("quantity")))
        unit_rate = bounded(to_decimal(raw.get("unit_rate")))
    except ValueError as exc:
        raise RecordError(f"item {index}: {exc}") from exc
    if quantity < 0 or unit_rate < 0:
        raise RecordError(f"item {index}: quantity and rate must not be negative")
    return LineItem(description=description, quantity=quantity, unit=unit, unit_rate=unit_rate)


@dataclass
class QuotationRecord:
    """Partial quotation decoded from an exported document; every field optional."""

    customer_name: Optional[str] = None
    address: Optional[str] = None
    mobile_number: Optional[str] = None
    quote_number: Optional[str] = None
    date: Optional[str] = None
    validity_days: Optional[str] = None
    requirements: Optional[str] = None
    prepared_by: Optional[str] = None
    sales_person: Optional[str] = None
    items: Optional[List[LineItem]] = None
    show_title_heading: Optional[bool] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "QuotationRecord":
        if not isinstance(payload, dict):
            raise RecordError("quotation record must be an object")
        values: Dict[str, Any] = {name: _text(payload, name) for name in TEXT_FIELDS}

        raw_items = payload.get("items")
        if raw_items is not None:
            if not isinstance(raw_items, list):
                raise RecordError("items must be a list")
            values["items"] = [_item_from_record(i, raw) for i, raw in enumerate(raw_items)]

        show_title = payload.get("show_title_heading")
        if show_title is not None and not isinstance(show_title, bool):
            raise RecordError("show_title_heading must be true or false")
        values["show_title_heading"] = show_title
        return cls(**values)

    @classmethod
    def from_json(cls, blob: str) -> "QuotationRecord":
        try:
            payload = json.loads(blob)
        except json.JSONDecodeError as exc:
            raise RecordError(f"invalid quotation data: {exc}") from exc
        return cls.from_payload(payload)

    def materialize(self) -> Quotation:
        """Build a full quotation, filling gaps with fresh-session defaults."""
        fresh = Quotation()
        return Quotation(
            customer_name=self.customer_name or fresh.customer_name,
            address=self.address or fresh.address,
            mobile_number=self.mobile_number or fresh.mobile_number,
            quote_number=self.quote_number or fresh.quote_number,
            date=self.date or fresh.date,
            validity_days=self.validity_days or fresh.validity_days,
            requirements=self.requirements or fresh.requirements,
            prepared_by=self.prepared_by or fresh.prepared_by,
            sales_person=self.sales_person or fresh.sales_person,
            items=list(self.items or []),
            show_title_heading=(
                fresh.show_title_heading if self.show_title_heading is None else self.show_title_heading
            ),
        )


# ---------------------------------------------------------------------------
# Quote numbers
# ---------------------------------------------------------------------------


def next_quote_number(current: str, base: str) -> str:
    """Return the quote number that follows ``current`` (or ``base``).

    The trailing run of digits is incremented and keeps its zero-padded
    width. A quote number without trailing digits gets ``-1`` appended.
    """
    if not base and not current:
        return ""
    last = current or base
    match = TRAILING_DIGITS.search(last)
    if not match:
        return f"{last}-1"
    digits = match.group(1)
    prefix = last[: match.start()]
    return f"{prefix}{int(digits) + 1:0{len(digits)}d}"


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@dataclass
class PendingDownload:
    filename: str
    data: bytes


class QuoteSession:
    """The quotation being edited in one browser session."""

    def __init__(self, quotation: Optional[Quotation] = None):
        self.quotation = quotation or Quotation()
        self.base_quote_number = ""
        self.draft = ItemDraft()
        self.errors: Dict[str, str] = {}
        self.pending_download: Optional[PendingDownload] = None

    def update_field(self, name: str, value: Any) -> None:
        if name == "show_title_heading":
            self.quotation.show_title_heading = bool(value)
            return
        if name not in TEXT_FIELDS:
            raise KeyError(name)
        value = "" if value is None else str(value)
        if name == "quote_number" and not self.base_quote_number:
            self.base_quote_number = value
        setattr(self.quotation, name, value)
        self.errors.pop(name, None)

    def update_draft(
        self,
        description: str,
        quantity: Decimal,
        unit: str,
        unit_rate: Decimal,
        custom_unit: str = "",
    ) -> None:
        self.draft.description = description
        self.draft.quantity = quantity
        self.draft.unit_rate = unit_rate
        self.draft.set_unit(unit)
        if unit == CUSTOM_UNIT:
            self.draft.custom_unit = custom_unit

    def add_item(self) -> LineItem:
        draft = self.draft
        if not draft.description.strip() or not draft.quantity or not draft.unit_rate:
            raise ItemEntryError("Please fill in all required item fields")
        if draft.quantity < 0 or draft.unit_rate < 0:
            raise ItemEntryError("Quantity and rate must not be negative")
        try:
            bounded(draft.quantity)
            bounded(draft.unit_rate)
        except ValueError as exc:
            raise ItemEntryError(f"Quantity and rate must be below 10^{MAX_EXPONENT + 1}") from exc
        item = LineItem(
            description=draft.description,
            quantity=draft.quantity,
            unit=draft.resolved_unit(),
            unit_rate=draft.unit_rate,
        )
        self.quotation.items.append(item)
        self.draft = ItemDraft()
        return item

    def remove_item(self, index: int) -> LineItem:
        items = self.quotation.items
        if not 0 <= index < len(items):
            raise IndexError(f"no item at position {index}")
        return items.pop(index)

    def validate(self) -> bool:
        q = self.quotation
        errors: Dict[str, str] = {}
        if not q.customer_name.strip():
            errors["customer_name"] = "Customer name is required"
        if not q.address.strip():
            errors["address"] = "Address is required"
        mobile = q.mobile_number.strip()
        if not mobile:
            errors["mobile_number"] = "Mobile number is required"
        elif not MOBILE_PATTERN.match(mobile):
            errors["mobile_number"] = "Please enter a valid 10-digit mobile number"
        if not q.quote_number.strip():
            errors["quote_number"] = "Quote number is required"
        self.errors = errors
        return not errors

    def next_quote_number(self) -> str:
        return next_quote_number(self.quotation.quote_number, self.base_quote_number)

    def load(self, quotation: Quotation) -> None:
        self.quotation = quotation
        self.base_quote_number = quotation.quote_number or ""
        self.errors = {}

    def submit(self, render: Callable[[Quotation], bytes]) -> bytes:
        """Export the current quotation, then start the next one.

        ``render`` runs on a snapshot and must finish before the record is
        reset. Returns the rendered document.
        """
        if not self.validate():
            raise ValueError("Please fill in all required fields")
        if not self.quotation.items:
            raise ItemEntryError("Add at least one item before submitting")
        snapshot = copy.deepcopy(self.quotation)
        data = render(snapshot)

        next_number = self.next_quote_number()
        self.quotation = Quotation(quote_number=next_number)
        self.base_quote_number = next_number
        self.errors = {}
        self.draft = ItemDraft()
        logger.info("Submitted quotation %s, next is %s", snapshot.quote_number, next_number)
        return data
