from decimal import Decimal

import pytest

from marketline.allocation import allocate, allocate_line
from marketline.domain import (
    FullyAllocated,
    PartiallyAllocated,
    RequestedLine,
    Unavailable,
    ZeroAvailable,
)
from marketline.repositories import InMemoryCatalogRepository

from conftest import make_product


def line(name="Widget", category="Tools", quantity=1):
    return RequestedLine(name=name, category=category, quantity=quantity)


class TestAllocateLine:
    def test_missing_product_is_unavailable(self):
        outcome = allocate_line(line(quantity=2), None)
        assert isinstance(outcome, Unavailable)
        assert outcome.wanted_quantity == 2

    def test_enough_stock_is_fully_allocated(self):
        outcome = allocate_line(line(quantity=3), make_product(stock=5))
        assert isinstance(outcome, FullyAllocated)
        assert outcome.line.quantity == 3
        assert outcome.line.unit_price == Decimal("10.00")
        assert outcome.line.product_id == "p-widget"

    def test_exact_stock_is_fully_allocated(self):
        outcome = allocate_line(line(quantity=5), make_product(stock=5))
        assert isinstance(outcome, FullyAllocated)

    def test_short_stock_is_partially_allocated(self):
        outcome = allocate_line(line(quantity=5), make_product(stock=2))
        assert isinstance(outcome, PartiallyAllocated)
        assert outcome.line.quantity == 2
        assert outcome.shortage.available_quantity == 2
        assert outcome.shortage.wanted_quantity == 5
        assert outcome.shortage.remaining_quantity == 3

    def test_empty_stock_is_zero_available(self):
        outcome = allocate_line(line(quantity=1), make_product(stock=0))
        assert isinstance(outcome, ZeroAvailable)
        assert outcome.shortage.available_quantity == 0
        assert outcome.shortage.remaining_quantity is None

    @pytest.mark.parametrize("quantity,stock", [(1, 0), (1, 1), (3, 2), (2, 3), (7, 7), (10, 4)])
    def test_allocated_quantity_is_min_of_requested_and_stock(self, quantity, stock):
        outcome = allocate_line(line(quantity=quantity), make_product(stock=stock))
        allocated = outcome.line.quantity if hasattr(outcome, "line") else 0
        assert allocated == min(quantity, stock)


class TestShortageSerialization:
    def test_unavailable_entry_uses_camel_case_and_flag(self):
        shortage = allocate_line(line(name="Gizmo", quantity=4), None).shortage
        assert shortage.model_dump(by_alias=True, exclude_none=True) == {
            "name": "Gizmo",
            "wantedQuantity": 4,
            "available": False,
        }

    def test_zero_available_entry(self):
        shortage = allocate_line(line(quantity=1), make_product(stock=0)).shortage
        assert shortage.model_dump(by_alias=True, exclude_none=True) == {
            "name": "Widget",
            "availableQuantity": 0,
            "wantedQuantity": 1,
        }

    def test_partial_entry(self):
        shortage = allocate_line(line(quantity=5), make_product(stock=2)).shortage
        assert shortage.model_dump(by_alias=True, exclude_none=True) == {
            "name": "Widget",
            "availableQuantity": 2,
            "wantedQuantity": 5,
            "remainingQuantity": 3,
        }


class TestAllocate:
    @pytest.fixture
    def catalog(self):
        return InMemoryCatalogRepository(
            [
                make_product("p-1", "Widget", "Tools", "10.00", 5),
                make_product("p-2", "Hammer", "Tools", "7.50", 2),
                make_product("p-3", "Lamp", "Home", "24.00", 0),
            ]
        )

    def test_mixed_request_splits_in_and_out_of_stock(self, catalog):
        result = allocate(
            [
                line("Widget", "Tools", 3),
                line("Hammer", "Tools", 4),
                line("Lamp", "Home", 1),
                line("Gizmo", "Tools", 2),
            ],
            catalog.find,
        )

        assert [outcome.kind for outcome in result.outcomes] == [
            "fully_allocated",
            "partially_allocated",
            "zero_available",
            "unavailable",
        ]
        assert [(item.name, item.quantity) for item in result.in_stock] == [("Widget", 3), ("Hammer", 2)]
        assert [item.name for item in result.out_of_stock] == ["Hammer", "Lamp", "Gizmo"]
        assert result.total_amount == Decimal("45.00")

    def test_total_is_sum_of_fulfilled_lines(self, catalog):
        result = allocate([line("Widget", "Tools", 2), line("Hammer", "Tools", 1)], catalog.find)
        assert result.out_of_stock == []
        assert result.total_amount == Decimal("10.00") * 2 + Decimal("7.50")

    def test_nothing_allocable_yields_empty_in_stock(self, catalog):
        result = allocate([line("Lamp", "Home", 1), line("Gizmo", "Tools", 1)], catalog.find)
        assert result.in_stock == []
        assert result.total_amount == Decimal("0.00")
        assert len(result.out_of_stock) == 2

    def test_lookup_is_case_sensitive(self, catalog):
        result = allocate([line("widget", "tools", 1)], catalog.find)
        assert isinstance(result.outcomes[0], Unavailable)
