"""Tests for warehouses, locations, operation types, products, lots and units."""

from decimal import Decimal

import pytest

from erp.core.exceptions import FieldValidationError
from erp.models import UOM
from erp.services.uom import compute_quantity

from tests.factories import API, OperationFactory, ProductFactory, QuantityFactory

WAREHOUSES = f"{API}/inventories/warehouses"
LOCATIONS = f"{API}/inventories/locations"
OPERATION_TYPES = f"{API}/inventories/operation-types"
PRODUCTS = f"{API}/inventories/products"
LOTS = f"{API}/inventories/lots"


class TestWarehouses:
    def test_create_builds_locations_and_operation_types(self, client, admin, seed):
        response = client.post(WAREHOUSES, json={"name": "Second", "code": "W2"}, headers=admin)

        assert response.status_code == 201
        assert response.json()["message"] == "Warehouse created successfully."
        warehouse = response.json()["data"]
        assert warehouse["company_id"] == seed.company_id

        stock = client.get(f"{LOCATIONS}/{warehouse['lot_stock_location_id']}", headers=admin).json()["data"]
        assert stock["full_name"] == "W2/Stock"
        assert stock["type"] == "internal"

        types = client.get(
            OPERATION_TYPES, params={"filter[warehouse_id]": warehouse["id"], "sort": "sort"}, headers=admin
        ).json()["data"]
        assert [t["sequence_code"] for t in types] == ["IN", "OUT", "INT", "DS"]
        assert [t["type"] for t in types] == ["incoming", "outgoing", "internal", "dropship"]

    def test_new_warehouse_numbers_its_own_operations(self, client, admin, database, seed):
        warehouse = client.post(WAREHOUSES, json={"name": "Second", "code": "W2"}, headers=admin).json()["data"]
        incoming = client.get(
            OPERATION_TYPES,
            params={"filter[warehouse_id]": warehouse["id"], "filter[type]": "incoming"},
            headers=admin,
        ).json()["data"][0]
        product_id = ProductFactory.create(database, seed)

        receipt = OperationFactory(client, admin).receipt(product_id, 1, operation_type_id=incoming["id"])

        assert receipt["name"] == "W2/IN/00001"
        assert receipt["destination_location_id"] == warehouse["lot_stock_location_id"]

    def test_code_must_be_unique(self, client, admin):
        response = client.post(WAREHOUSES, json={"name": "Duplicate", "code": "WH"}, headers=admin)

        assert response.status_code == 422
        assert response.json()["errors"]["code"] == ["The code has already been taken."]

    def test_soft_delete_and_restore(self, client, admin, seed):
        path = f"{WAREHOUSES}/{seed.warehouse_id}"

        assert client.delete(path, headers=admin).json() == {"message": "Warehouse deleted successfully."}
        assert client.get(path, headers=admin).status_code == 404

        response = client.post(f"{path}/restore", headers=admin)
        assert response.json()["message"] == "Warehouse restored successfully."
        assert client.get(path, headers=admin).status_code == 200


class TestLocations:
    def test_full_name_follows_parent(self, client, admin, seed):
        response = client.post(
            LOCATIONS, json={"name": "Shelf 1", "parent_id": seed.stock_location_id}, headers=admin
        )

        assert response.status_code == 201
        assert response.json()["message"] == "Location created successfully."
        assert response.json()["data"]["full_name"] == "WH/Stock/Shelf 1"
        assert response.json()["data"]["type"] == "internal"

    def test_unknown_parent_is_refused(self, client, admin):
        response = client.post(LOCATIONS, json={"name": "Orphan", "parent_id": 9999}, headers=admin)

        assert response.status_code == 422
        assert response.json()["errors"]["parent_id"] == ["The selected parent id is invalid."]

    def test_location_cannot_be_its_own_parent(self, client, admin, seed):
        response = client.patch(
            f"{LOCATIONS}/{seed.stock_location_id}", json={"parent_id": seed.stock_location_id}, headers=admin
        )

        assert response.status_code == 422
        assert response.json()["errors"]["parent_id"] == ["A location cannot be its own parent."]

    def test_filter_scrap_locations(self, client, admin, seed):
        data = client.get(LOCATIONS, params={"filter[is_scrap]": "true"}, headers=admin).json()["data"]

        assert [item["id"] for item in data] == [seed.scrap_location_id]


class TestOperationTypes:
    def test_create(self, client, admin, seed):
        response = client.post(
            OPERATION_TYPES,
            json={
                "name": "Returns",
                "type": "incoming",
                "sequence_code": "RET",
                "warehouse_id": seed.warehouse_id,
                "source_location_id": seed.customer_location_id,
                "destination_location_id": seed.stock_location_id,
                "create_backorder": "never",
            },
            headers=admin,
        )

        assert response.status_code == 201
        assert response.json()["message"] == "Operation type created successfully."
        data = response.json()["data"]
        assert data["create_backorder"] == "never"
        assert data["company_id"] == seed.company_id

    def test_seeded_types_return_into_each_other(self, client, admin, seed):
        incoming = client.get(f"{OPERATION_TYPES}/{seed.incoming_type_id}", headers=admin).json()["data"]
        outgoing = client.get(f"{OPERATION_TYPES}/{seed.outgoing_type_id}", headers=admin).json()["data"]

        assert incoming["return_operation_type_id"] == seed.outgoing_type_id
        assert outgoing["return_operation_type_id"] == seed.incoming_type_id
        assert incoming["create_backorder"] == "ask"

    def test_unknown_location_is_refused(self, client, admin, seed):
        response = client.post(
            OPERATION_TYPES,
            json={"name": "Bad", "type": "internal", "sequence_code": "BAD", "source_location_id": 9999},
            headers=admin,
        )

        assert response.status_code == 422
        assert "source_location_id" in response.json()["errors"]


class TestProducts:
    def test_create_defaults_to_reference_unit(self, client, admin, seed):
        response = client.post(PRODUCTS, json={"name": "Chair"}, headers=admin)

        assert response.status_code == 201
        assert response.json()["message"] == "Product created successfully."
        data = response.json()["data"]
        assert data["uom_id"] == seed.units_id
        assert data["company_id"] == seed.company_id
        assert data["on_hand_quantity"] == 0

    def test_purchase_unit_must_share_category(self, client, admin, seed):
        response = client.post(
            PRODUCTS, json={"name": "Chair", "uom_id": seed.units_id, "uom_po_id": seed.kg_id}, headers=admin
        )

        assert response.status_code == 422
        assert response.json()["errors"]["uom_po_id"] == [
            "The purchase unit must belong to the same category as the product unit."
        ]

    def test_on_hand_counts_internal_locations_only(self, client, admin, database, seed):
        product_id = ProductFactory.create(database, seed)
        QuantityFactory.create(database, product_id, seed.stock_location_id, 7)
        QuantityFactory.create(database, product_id, seed.customer_location_id, 3)

        data = client.get(PRODUCTS, params={"filter[id]": product_id}, headers=admin).json()["data"]

        assert data[0]["on_hand_quantity"] == 7

    def test_unknown_type_is_refused(self, client, admin):
        response = client.post(PRODUCTS, json={"name": "Chair", "type": "combo"}, headers=admin)

        assert response.status_code == 422
        assert "type" in response.json()["errors"]


class TestLots:
    def test_create_inherits_product_unit(self, client, admin, database, seed):
        product_id = ProductFactory.create(database, seed, tracking="lot")

        response = client.post(LOTS, json={"name": "LOT-1", "product_id": product_id}, headers=admin)

        assert response.status_code == 201
        assert response.json()["message"] == "Lot created successfully."
        assert response.json()["data"]["uom_id"] == seed.units_id

    def test_name_is_unique_per_product(self, client, admin, database, seed):
        first = ProductFactory.create(database, seed, tracking="lot")
        second = ProductFactory.create(database, seed, name="Lamp", tracking="lot")
        client.post(LOTS, json={"name": "LOT-1", "product_id": first}, headers=admin)

        duplicate = client.post(LOTS, json={"name": "LOT-1", "product_id": first}, headers=admin)
        other_product = client.post(LOTS, json={"name": "LOT-1", "product_id": second}, headers=admin)

        assert duplicate.status_code == 422
        assert duplicate.json()["errors"]["name"] == ["The name has already been taken for this product."]
        assert other_product.status_code == 201


class TestUnitConversion:
    @pytest.fixture
    def units(self):
        return UOM(id=1, name="Units", category_id=1, factor=Decimal("1"), rounding=Decimal("0.01"))

    @pytest.fixture
    def dozens(self):
        return UOM(id=2, name="Dozens", category_id=1, factor=Decimal("1") / Decimal("12"), rounding=Decimal("0.01"))

    @pytest.fixture
    def kg(self):
        return UOM(id=3, name="kg", category_id=2, factor=Decimal("1"), rounding=Decimal("0.01"))

    def test_dozens_to_units(self, dozens, units):
        assert compute_quantity(2, dozens, units) == Decimal("24")

    def test_units_to_dozens(self, units, dozens):
        assert compute_quantity(6, units, dozens) == Decimal("0.5")

    def test_same_unit_is_unchanged(self, units):
        assert compute_quantity("3.5", units, units) == Decimal("3.5")

    def test_cross_category_is_refused(self, units, kg):
        with pytest.raises(FieldValidationError) as exc:
            compute_quantity(1, units, kg, field="moves.0.uom_id")

        assert "moves.0.uom_id" in exc.value.errors
