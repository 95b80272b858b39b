"""
Unit tests for stock reconciliation.

Run: pytest tests/unit/test_stock_reconciliation_service.py -v
"""

import pytest

from services.stock_reconciliation_service import (
    LocationQuantity,
    legacy_stock,
    parse_quantity,
    reconcile_stock,
)
from exceptions import InvalidQuantityError, RowValidationError, StockMismatchError


class TestParseQuantity:
    """Tests for parse_quantity()"""

    def test_integer(self):
        assert parse_quantity("5") == 5

    def test_blank_and_none_are_zero(self):
        assert parse_quantity("") == 0
        assert parse_quantity("   ") == 0
        assert parse_quantity(None) == 0

    def test_non_numeric_is_zero(self):
        assert parse_quantity("abc") == 0
        assert parse_quantity("n/a") == 0

    def test_decimal_text_is_truncated(self):
        assert parse_quantity("5.0") == 5
        assert parse_quantity("3,9") == 3

    def test_negative_raises_row_error(self):
        with pytest.raises(InvalidQuantityError) as exc_info:
            parse_quantity("-2", "stock_paris")

        assert exc_info.value.details == {"column": "stock_paris", "value": "-2"}
        assert isinstance(exc_info.value, RowValidationError)


class TestReconcileStock:
    """Tests for reconcile_stock()"""

    def test_matching_declared_total(self):
        """stock_A=5, stock_B=5, stock=10 -> allocations A:5, B:5"""
        result = reconcile_stock("ABC-1", {"a": 5, "b": 5}, declared_total=10)

        assert result.total == 10
        assert result.allocations == [
            LocationQuantity(stock_id="a", quantity=5),
            LocationQuantity(stock_id="b", quantity=5),
        ]

    def test_mismatch_names_both_values_and_sku(self):
        """stock_A=5, stock_B=5, stock=11 -> mismatch 10 vs 11"""
        with pytest.raises(StockMismatchError) as exc_info:
            reconcile_stock("ABC-1", {"a": 5, "b": 5}, declared_total=11)

        error = exc_info.value
        assert error.details == {"sku": "ABC-1", "computed": 10, "declared": 11}
        assert "10" in error.message
        assert "11" in error.message
        assert "ABC-1" in error.message

    def test_no_declared_total_uses_sum(self):
        result = reconcile_stock("ABC-1", {"a": 2, "b": 3})
        assert result.total == 5

    def test_zero_quantities_not_allocated(self):
        result = reconcile_stock("ABC-1", {"a": 0, "b": 4, "c": 0}, declared_total=4)

        assert result.allocations == [LocationQuantity(stock_id="b", quantity=4)]

    def test_all_zero_is_valid(self):
        result = reconcile_stock("ABC-1", {"a": 0, "b": 0}, declared_total=0)

        assert result.total == 0
        assert result.allocations == []

    @pytest.mark.parametrize("declared,ok", [(6, True), (5, False), (7, False), (0, False)])
    def test_succeeds_only_when_declared_equals_sum(self, declared, ok):
        quantities = {"a": 1, "b": 2, "c": 3}
        if ok:
            assert reconcile_stock("X", quantities, declared).total == 6
        else:
            with pytest.raises(StockMismatchError):
                reconcile_stock("X", quantities, declared)


class TestLegacyStock:
    """Files without per-location columns."""

    def test_declared_total_is_stock(self):
        result = legacy_stock(7)
        assert result.total == 7
        assert result.allocations == []

    def test_absent_total_is_zero(self):
        assert legacy_stock(None).total == 0
