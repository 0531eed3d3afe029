"""Tests for reservation, validation, backorders, returns and the reservation job."""

import asyncio

import pytest

from erp.models import OperationType
from erp.services.scheduler import reserve_pending_operations

from tests.factories import (
    API, OPERATION_PATHS, OperationFactory, ProductFactory, QuantityFactory, stock_quantity,
)


@pytest.fixture
def product_id(database, seed):
    return ProductFactory.create(database, seed)


@pytest.fixture
def factory(client, admin):
    return OperationFactory(client, admin)


def _operations(client, headers, kind):
    response = client.get(OPERATION_PATHS[kind], params={"include": "moves"}, headers=headers)
    return response.json()["data"]


class TestReceipts:
    def test_validated_receipt_moves_stock_in(self, client, admin, seed, factory, product_id):
        receipt = factory.receipt(product_id, 10, state="todo")
        assert receipt["state"] == "assigned"

        response = client.post(f"{OPERATION_PATHS['receipt']}/{receipt['id']}/validate", headers=admin)

        assert response.status_code == 200
        assert response.json()["data"]["closed_at"] is not None
        assert stock_quantity(client, admin, product_id, seed.stock_location_id) == 10
        assert stock_quantity(client, admin, product_id, seed.supplier_location_id) == -10

        move = factory.show("receipt", receipt["id"])["moves"][0]
        assert move["state"] == "done"
        assert move["quantity"] == 10
        assert move["is_picked"] is True

    def test_draft_operation_can_be_validated_directly(self, client, admin, seed, factory, product_id):
        receipt = factory.receipt(product_id, 3)

        response = client.post(f"{OPERATION_PATHS['receipt']}/{receipt['id']}/validate", headers=admin)

        assert response.json()["data"]["state"] == "done"
        assert stock_quantity(client, admin, product_id, seed.stock_location_id) == 3

    def test_nothing_to_validate(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 0, state="todo")

        response = client.post(f"{OPERATION_PATHS['receipt']}/{receipt['id']}/validate", headers=admin)

        assert response.status_code == 422
        assert response.json()["message"] == "There is no quantity to validate."


class TestReservation:
    def test_reservation_never_exceeds_demand(self, client, admin, database, seed, factory, product_id):
        quant_id = QuantityFactory.create(database, product_id, seed.stock_location_id, 10)

        delivery = factory.delivery(product_id, 4, state="todo")

        assert delivery["state"] == "assigned"
        move = factory.show("delivery", delivery["id"])["moves"][0]
        assert move["state"] == "assigned"
        assert move["reserved_quantity"] == 4
        assert QuantityFactory.get(database, quant_id).reserved_quantity == 4

    def test_partial_availability(self, client, admin, database, seed, factory, product_id):
        quant_id = QuantityFactory.create(database, product_id, seed.stock_location_id, 3)

        delivery = factory.delivery(product_id, 5, state="todo")

        assert delivery["state"] == "assigned"
        move = factory.show("delivery", delivery["id"])["moves"][0]
        assert move["state"] == "partially_available"
        assert move["reserved_quantity"] == 3
        assert QuantityFactory.get(database, quant_id).reserved_quantity == 3

    def test_already_reserved_stock_is_not_taken_twice(self, client, admin, database, seed, factory, product_id):
        QuantityFactory.create(database, product_id, seed.stock_location_id, 5)

        first = factory.delivery(product_id, 4, state="todo")
        second = factory.delivery(product_id, 4, state="todo")

        assert factory.show("delivery", first["id"])["moves"][0]["reserved_quantity"] == 4
        assert factory.show("delivery", second["id"])["moves"][0]["reserved_quantity"] == 1

    def test_no_stock_leaves_operation_confirmed(self, factory, product_id):
        delivery = factory.delivery(product_id, 5, state="todo")

        assert delivery["state"] == "confirmed"

    def test_shipping_policy_one_waits_for_every_move(self, client, admin, database, seed, factory, product_id):
        other = ProductFactory.create(database, seed, name="Lamp")
        QuantityFactory.create(database, product_id, seed.stock_location_id, 5)
        moves = [
            {"product_id": product_id, "product_uom_qty": 5},
            {"product_id": other, "product_uom_qty": 1},
        ]

        direct = factory.delivery(product_id, 0, state="todo", moves=moves)
        assert direct["state"] == "assigned"

        QuantityFactory.create(database, product_id, seed.stock_location_id, 5)
        one = factory.delivery(product_id, 0, state="todo", moves=moves, move_type="one")
        assert one["move_type"] == "one"
        assert one["state"] == "confirmed"

    def test_check_availability_after_stock_arrives(self, client, admin, factory, product_id):
        delivery = factory.delivery(product_id, 5, state="todo")
        assert delivery["state"] == "confirmed"
        factory.receipt(product_id, 5, state="done")

        response = client.post(
            f"{OPERATION_PATHS['delivery']}/{delivery['id']}/check-availability", headers=admin
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Delivery availability checked successfully."
        assert response.json()["data"]["state"] == "assigned"

    def test_cancel_releases_reservation(self, client, admin, database, seed, factory, product_id):
        quant_id = QuantityFactory.create(database, product_id, seed.stock_location_id, 10)
        delivery = factory.delivery(product_id, 4, state="todo")

        response = client.post(f"{OPERATION_PATHS['delivery']}/{delivery['id']}/cancel", headers=admin)

        assert response.json()["data"]["state"] == "canceled"
        assert QuantityFactory.get(database, quant_id).reserved_quantity == 0
        moves = factory.show("delivery", delivery["id"])["moves"]
        assert moves[0]["state"] == "canceled"
        assert moves[0]["reserved_quantity"] == 0

    def test_reservation_job_picks_up_new_stock(self, client, admin, database, seed, factory, product_id):
        delivery = factory.delivery(product_id, 5, state="todo")
        QuantityFactory.create(database, product_id, seed.stock_location_id, 5)

        processed = asyncio.run(reserve_pending_operations(database.session_factory))

        assert processed == 1
        assert factory.show("delivery", delivery["id"])["state"] == "assigned"


class TestValidation:
    def test_partial_validation_creates_backorder(self, client, admin, database, seed, factory, product_id):
        QuantityFactory.create(database, product_id, seed.stock_location_id, 10)
        delivery = factory.delivery(product_id, 8, state="todo")
        move = factory.show("delivery", delivery["id"])["moves"][0]
        path = f"{OPERATION_PATHS['delivery']}/{delivery['id']}"

        client.patch(
            path,
            json={"moves": [{"id": move["id"], "product_id": product_id, "product_uom_qty": 8, "quantity": 5}]},
            headers=admin,
        )
        response = client.post(f"{path}/validate", headers=admin)

        assert response.json()["data"]["state"] == "done"
        done_move = factory.show("delivery", delivery["id"])["moves"][0]
        assert done_move["quantity"] == 5
        assert done_move["product_uom_qty"] == 5
        assert stock_quantity(client, admin, product_id, seed.stock_location_id) == 5
        assert stock_quantity(client, admin, product_id, seed.customer_location_id) == 5

        backorders = [op for op in _operations(client, admin, "delivery") if op["back_order_id"] == delivery["id"]]
        assert len(backorders) == 1
        backorder = backorders[0]
        assert backorder["name"] == "WH/OUT/00002"
        assert [m["product_uom_qty"] for m in backorder["moves"]] == [3]
        assert backorder["state"] == "assigned"

    def test_backorder_disabled_drops_remainder(self, client, admin, database, seed, factory, product_id):
        async def _never(session):
            operation_type = await session.get(OperationType, seed.outgoing_type_id)
            operation_type.create_backorder = "never"
        database.run(_never)

        QuantityFactory.create(database, product_id, seed.stock_location_id, 10)
        delivery = factory.delivery(product_id, 8, state="todo")
        move = factory.show("delivery", delivery["id"])["moves"][0]
        path = f"{OPERATION_PATHS['delivery']}/{delivery['id']}"
        client.patch(
            path,
            json={"moves": [{"id": move["id"], "product_id": product_id, "product_uom_qty": 8, "quantity": 5}]},
            headers=admin,
        )

        client.post(f"{path}/validate", headers=admin)

        assert len(_operations(client, admin, "delivery")) == 1
        assert stock_quantity(client, admin, product_id, seed.stock_location_id) == 5

    def test_delivery_without_stock_goes_negative(self, client, admin, seed, factory, product_id):
        factory.delivery(product_id, 2, state="done")

        assert stock_quantity(client, admin, product_id, seed.stock_location_id) == -2

    def test_internal_transfer_keeps_on_hand(self, client, admin, database, seed, factory, product_id):
        QuantityFactory.create(database, product_id, seed.stock_location_id, 10)
        shelf = client.post(
            f"{API}/inventories/locations",
            json={"name": "Shelf 1", "parent_id": seed.stock_location_id, "warehouse_id": seed.warehouse_id},
            headers=admin,
        ).json()["data"]
        assert shelf["full_name"] == "WH/Stock/Shelf 1"

        factory.internal(product_id, 4, state="done", destination_location_id=shelf["id"])

        assert stock_quantity(client, admin, product_id, seed.stock_location_id) == 6
        assert stock_quantity(client, admin, product_id, shelf["id"]) == 4
        product = client.get(f"{API}/inventories/products/{product_id}", headers=admin).json()["data"]
        assert product["on_hand_quantity"] == 10


class TestReturns:
    def test_return_reverses_a_done_receipt(self, client, admin, seed, factory, product_id):
        receipt = factory.receipt(product_id, 10, state="done")
        receipt_move = factory.show("receipt", receipt["id"])["moves"][0]

        response = client.post(f"{OPERATION_PATHS['receipt']}/{receipt['id']}/return", headers=admin)

        assert response.status_code == 200
        assert response.json()["message"] == "Receipt return created successfully."
        returned = response.json()["data"]
        assert returned["return_id"] == receipt["id"]
        assert returned["operation_type_id"] == seed.outgoing_type_id
        assert returned["name"] == "WH/OUT/00001"
        assert returned["source_location_id"] == seed.stock_location_id
        assert returned["destination_location_id"] == seed.supplier_location_id
        assert returned["state"] == "assigned"
        assert returned["moves"][0]["product_uom_qty"] == 10
        assert returned["moves"][0]["origin_returned_move_id"] == receipt_move["id"]

        response = client.post(f"{OPERATION_PATHS['delivery']}/{returned['id']}/validate", headers=admin)
        assert response.json()["data"]["state"] == "done"
        assert stock_quantity(client, admin, product_id, seed.stock_location_id) == 0

    def test_return_never_exceeds_done_quantity(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 10, state="done")
        path = f"{OPERATION_PATHS['receipt']}/{receipt['id']}/return"
        assert client.post(path, headers=admin).status_code == 200

        response = client.post(path, headers=admin)

        assert response.status_code == 422
        assert response.json()["message"] == "There is nothing left to return."

    def test_canceled_return_frees_the_quantity(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 10, state="done")
        path = f"{OPERATION_PATHS['receipt']}/{receipt['id']}/return"
        returned = client.post(path, headers=admin).json()["data"]
        client.post(f"{OPERATION_PATHS['delivery']}/{returned['id']}/cancel", headers=admin)

        response = client.post(path, headers=admin)

        assert response.status_code == 200
        assert response.json()["data"]["moves"][0]["product_uom_qty"] == 10
