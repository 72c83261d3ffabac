from decimal import Decimal

import pytest

from presets import CompanyProfile
from quotation import LineItem, Quotation


@pytest.fixture
def company():
    return CompanyProfile(
        name="TEST TRADERS",
        address_lines=("1 Market Road", "Town 123"),
        phone="MOB: 9999999999",
        email="test@example.com",
    )


@pytest.fixture
def acme_quotation():
    """A complete quotation for Acme with a single pipe item."""
    return Quotation(
        customer_name="Acme",
        address="12 Main Road\nAlappuzha",
        mobile_number="9876543210",
        quote_number="QT-2024-007",
        date="01/02/2024",
        validity_days="7",
        items=[LineItem(description="Pipe", quantity=Decimal("3"), unit="MTR", unit_rate=Decimal("100"))],
        show_title_heading=False,
    )
