"""
Unit tests for Catalog product models.
"""

from datetime import datetime, timezone

import pytest

from shared.errors import InvalidInputError
from service_catalog.app.models import (
    Product, ProductDraft, ProductUpdate, product_cache_key,
)


class TestProductDraft:
    """Test cases for create input validation."""

    def test_valid_draft(self):
        draft = ProductDraft.from_attributes({"name": "Widget", "price": 999})
        assert draft == ProductDraft(name="Widget", price=999)

    @pytest.mark.parametrize("attributes", [
        {},
        {"name": "Widget"},
        {"price": 999},
    ])
    def test_missing_fields_rejected(self, attributes):
        with pytest.raises(InvalidInputError) as exc_info:
            ProductDraft.from_attributes(attributes)
        assert exc_info.value.code == "INVALID_INPUT"
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize("price", [0, -5, True, "999", 9.99])
    def test_non_positive_or_non_integer_price_rejected(self, price):
        with pytest.raises(InvalidInputError):
            ProductDraft.from_attributes({"name": "Widget", "price": price})

    @pytest.mark.parametrize("attributes", [
        {"price": 999},
        {"name": None, "price": 999},
        {"name": "", "price": 999},
        {"name": "   ", "price": 999},
    ])
    def test_blank_name_reported_as_missing(self, attributes):
        with pytest.raises(InvalidInputError) as exc_info:
            ProductDraft.from_attributes(attributes)
        assert exc_info.value.message == "name and price are required"
        assert exc_info.value.details == {"missing": ["name"]}

    def test_non_string_name_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            ProductDraft.from_attributes({"name": 42, "price": 999})
        assert exc_info.value.details == {"field": "name"}


class TestProductUpdate:
    """Test cases for partial update input."""

    def test_empty_update_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            ProductUpdate.from_attributes({})
        assert exc_info.value.details["updatable_fields"] == ["name", "price"]

    def test_unknown_fields_do_not_count(self):
        with pytest.raises(InvalidInputError):
            ProductUpdate.from_attributes({"id": 7, "updated_at": "now"})

    def test_partial_update_keeps_only_supplied_fields(self):
        update = ProductUpdate.from_attributes({"price": 1099})
        assert update.name is None
        assert update.changes() == {"price": 1099}

    def test_invalid_price_rejected(self):
        with pytest.raises(InvalidInputError):
            ProductUpdate.from_attributes({"price": 0})


class TestProduct:
    """Test cases for the product record."""

    def test_json_form_preserves_timestamps(self):
        stamp = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        product = Product(1, "Widget", 999, stamp, stamp)

        data = product.to_dict()

        assert data["updated_at"] == "2024-01-01T12:00:00+00:00"
        assert Product.from_dict(data) == product

    def test_from_row(self):
        product = Product.from_row({"id": 3, "name": "Gadget", "price": 10, "created_at": None, "updated_at": None})
        assert product == Product(3, "Gadget", 10)

    def test_cache_key_format(self):
        assert product_cache_key(42) == "product:42"
