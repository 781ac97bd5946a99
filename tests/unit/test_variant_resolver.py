"""
Unit tests for VariantResolver and OrphanProvisioner.

Run: pytest tests/unit/test_variant_resolver.py -v
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from exceptions import ResolutionError
from models.price_list import PriceListItemResponse, PriceListResponse, SupplierResponse
from services.variant_resolver import Orphan, OrphanProvisioner, Resolved, VariantResolver

from tests.factories import PriceListFactory, PriceListItemFactory, SupplierFactory


@pytest.fixture
def supplier() -> SupplierResponse:
    return SupplierResponse(**SupplierFactory.create(id="sup-1", name="Acme Parts"))


@pytest.fixture
def price_list_row() -> dict:
    return PriceListFactory.create(supplier_id="sup-1", id="pl-1")


@pytest.fixture
def price_list(price_list_row) -> PriceListResponse:
    return PriceListResponse(**price_list_row)


def item(price_list_row: dict, sku: str, **overrides) -> PriceListItemResponse:
    return PriceListItemResponse(**PriceListItemFactory.create(price_list_row, supplier_sku=sku, **overrides))


# ===================
# RESOLVING
# ===================

class TestResolve:
    """Tests for VariantResolver.resolve()"""

    def test_resolves_by_supplier_sku(self, catalog, price_list_row):
        """Should find the variant whose SKU equals the part number."""
        catalog.add_variant("A1")
        resolver = VariantResolver(catalog, store=MagicMock(), max_workers=2)

        result = resolver.resolve(item(price_list_row, "A1"))

        assert result == Resolved(variant_id="var-A1", sku="A1")

    def test_variant_sku_takes_precedence(self, catalog, price_list_row):
        """Should try the explicit variant SKU before the part number."""
        catalog.add_variant("A1")
        catalog.add_variant("INTERNAL-1")
        resolver = VariantResolver(catalog, store=MagicMock(), max_workers=2)

        result = resolver.resolve(item(price_list_row, "A1", variant_sku="INTERNAL-1"))

        assert result.variant_id == "var-INTERNAL-1"

    def test_matching_is_exact(self, catalog, price_list_row):
        """Should not fold case or strip characters."""
        catalog.add_variant("ab-1")
        resolver = VariantResolver(catalog, store=MagicMock(), max_workers=2)

        result = resolver.resolve(item(price_list_row, "AB-1"))

        assert result == Orphan(reason="No catalog variant with SKU AB-1")

    def test_linked_item_needs_no_lookup(self, price_list_row):
        """Should trust an existing variant link."""
        catalog = MagicMock()
        resolver = VariantResolver(catalog, store=MagicMock(), max_workers=2)

        result = resolver.resolve(item(price_list_row, "A1", product_variant_id="var-9"))

        assert result.variant_id == "var-9"
        catalog.find_variant_by_sku.assert_not_called()


class TestResolveAll:
    """Tests for VariantResolver.resolve_all()"""

    def test_resolves_and_flags_orphans(self, catalog, price_list_row):
        """Should map every item id to Resolved or Orphan."""
        # Arrange
        catalog.add_variant("A1")
        catalog.add_variant("A2")
        items = [item(price_list_row, sku) for sku in ("A1", "A2", "NEW")]
        resolver = VariantResolver(catalog, store=MagicMock(), max_workers=4)

        # Act
        resolutions = resolver.resolve_all(items)

        # Assert
        assert resolutions[items[0].id] == Resolved(variant_id="var-A1", sku="A1")
        assert resolutions[items[1].id] == Resolved(variant_id="var-A2", sku="A2")
        assert isinstance(resolutions[items[2].id], Orphan)

    def test_each_sku_looked_up_once(self, catalog, price_list_row):
        """Should look up a SKU shared by several items only once."""
        # Arrange
        catalog.add_variant("A1")
        spy = MagicMock(wraps=catalog)
        second_list = dict(price_list_row, id="pl-2")
        items = [item(price_list_row, "A1"), item(second_list, "A1")]
        resolver = VariantResolver(spy, store=MagicMock(), max_workers=4)

        # Act
        resolutions = resolver.resolve_all(items)

        # Assert
        spy.find_variant_by_sku.assert_called_once_with("A1")
        assert {r.variant_id for r in resolutions.values()} == {"var-A1"}


class TestLinkBack:
    """Tests for VariantResolver.link_back()"""

    def test_links_resolved_items(self, catalog, price_list_row):
        """Should write the variant id and SKU onto unlinked items."""
        # Arrange
        store = MagicMock()
        store.link_variant.return_value = 1
        items = [item(price_list_row, "A1")]
        resolver = VariantResolver(catalog, store=store, max_workers=2)
        resolutions = {items[0].id: Resolved(variant_id="var-A1", sku="A1")}

        # Act
        linked = resolver.link_back(items, resolutions)

        # Assert
        assert linked == 1
        store.link_variant.assert_called_once_with([items[0].id], "var-A1", "A1")

    def test_skipped_when_everything_linked(self, catalog, price_list_row):
        """Should not write anything when items already point at their variant."""
        store = MagicMock()
        linked_item = item(price_list_row, "A1", product_variant_id="var-A1")
        resolver = VariantResolver(catalog, store=store, max_workers=2)

        linked = resolver.link_back([linked_item], {linked_item.id: Resolved(variant_id="var-A1")})

        assert linked == 0
        store.link_variant.assert_not_called()

    def test_orphans_are_not_linked(self, catalog, price_list_row):
        """Should leave orphans alone."""
        store = MagicMock()
        orphan = item(price_list_row, "NEW")
        resolver = VariantResolver(catalog, store=store, max_workers=2)

        resolver.link_back([orphan], {orphan.id: Orphan(reason="none")})

        store.link_variant.assert_not_called()


# ===================
# PROVISIONING
# ===================

class TestOrphanProvisioner:
    """Tests for OrphanProvisioner"""

    def test_creates_variant_with_supplier_metadata(self, catalog, price_list_row, price_list, supplier):
        """Should seed the catalog with part number, price and supplier metadata."""
        # Arrange
        provisioner = OrphanProvisioner(catalog)
        orphan = item(price_list_row, "NEW-1", cost_price="42.00", description="Brake pad")

        # Act
        variant_id = provisioner.provision(orphan, price_list, supplier)

        # Assert
        assert variant_id == "NEW-1"
        seed = catalog.created[0]
        assert seed.title == "Brake pad"
        assert seed.amount == Decimal("42.00")
        assert seed.metadata == {
            "supplier_id": "sup-1",
            "supplier_name": "Acme Parts",
            "price_list_id": "pl-1",
            "supplier_sku": "NEW-1",
        }

    def test_title_defaults_to_part_number(self, catalog, price_list_row, price_list, supplier):
        """Should use the part number when there is no description."""
        OrphanProvisioner(catalog).provision(item(price_list_row, "NEW-1"), price_list, supplier)

        assert catalog.created[0].title == "NEW-1"

    def test_failure_raises_resolution_error(self, catalog, price_list_row, price_list, supplier):
        """Should wrap catalog failures in ResolutionError."""
        catalog.fail_create_for("NEW-1")

        with pytest.raises(ResolutionError) as exc_info:
            OrphanProvisioner(catalog).provision(item(price_list_row, "NEW-1"), price_list, supplier)

        assert exc_info.value.supplier_sku == "NEW-1"

    def test_provision_all_isolates_failures(self, catalog, price_list_row, price_list, supplier):
        """Should keep provisioning other part numbers after one fails."""
        # Arrange
        catalog.fail_create_for("BAD")
        items = [item(price_list_row, "GOOD"), item(price_list_row, "BAD")]

        # Act
        created, failed = OrphanProvisioner(catalog).provision_all(items, price_list, supplier)

        # Assert
        assert created == {items[0].id: Resolved(variant_id="GOOD", sku="GOOD", created=True)}
        assert list(failed) == [items[1].id]
        assert "BAD" in failed[items[1].id]

    def test_provision_all_creates_each_part_once(self, catalog, price_list_row, price_list, supplier):
        """Should create one variant for items sharing a part number."""
        second_list = dict(price_list_row, id="pl-2")
        items = [item(price_list_row, "NEW"), item(second_list, "NEW")]

        created, failed = OrphanProvisioner(catalog).provision_all(items, price_list, supplier)

        assert len(catalog.created) == 1
        assert len(created) == 2
        assert failed == {}
