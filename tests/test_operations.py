"""Tests for the receipt / delivery / internal transfer / dropship endpoints."""

import pytest

from erp.api.api_v1.endpoints.moves import ALLOWED_INCLUDES as MOVE_INCLUDES
from erp.api.api_v1.endpoints.operations.core import ALLOWED_INCLUDES as OPERATION_INCLUDES
from erp.main import app
from tests.factories import API, OPERATION_PATHS, OperationFactory, ProductFactory, QuantityFactory

KINDS = [
    ("receipt", "Receipt"),
    ("delivery", "Delivery"),
    ("internal", "Internal transfer"),
    ("dropship", "Dropship"),
]


@pytest.fixture
def product_id(database, seed):
    return ProductFactory.create(database, seed)


@pytest.fixture
def factory(client, admin):
    return OperationFactory(client, admin)


class TestCrud:
    @pytest.mark.parametrize("kind,label", KINDS)
    def test_create_uses_type_defaults(self, client, admin, seed, product_id, kind, label):
        response = client.post(
            OPERATION_PATHS[kind],
            json={"moves": [{"product_id": product_id, "product_uom_qty": 3}]},
            headers=admin,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == f"{label} created successfully."
        data = body["data"]
        assert data["state"] == "draft"
        assert data["user_id"] == seed.admin_id
        assert data["company_id"] == seed.company_id
        assert data["move_type"] == "direct"

    def test_receipt_defaults(self, client, admin, seed, factory, product_id):
        receipt = factory.receipt(product_id, 4)

        assert receipt["name"] == "WH/IN/00001"
        assert receipt["operation_type_id"] == seed.incoming_type_id
        assert receipt["source_location_id"] == seed.supplier_location_id
        assert receipt["destination_location_id"] == seed.stock_location_id

        second = factory.receipt(product_id, 4)
        assert second["name"] == "WH/IN/00002"

    def test_delivery_defaults(self, seed, factory, product_id):
        delivery = factory.delivery(product_id, 4)

        assert delivery["name"] == "WH/OUT/00001"
        assert delivery["source_location_id"] == seed.stock_location_id
        assert delivery["destination_location_id"] == seed.customer_location_id

    def test_new_moves_start_in_draft(self, factory, product_id):
        receipt = factory.receipt(product_id, 4)

        moves = factory.show("receipt", receipt["id"])["moves"]
        assert len(moves) == 1
        assert moves[0]["state"] == "draft"
        assert moves[0]["product_uom_qty"] == 4
        assert moves[0]["product_qty"] == 4
        assert moves[0]["quantity"] == 0
        assert moves[0]["reference"] == receipt["name"]

    def test_mismatching_operation_type_is_rejected(self, client, admin, seed, product_id):
        response = client.post(
            OPERATION_PATHS["receipt"],
            json={
                "operation_type_id": seed.outgoing_type_id,
                "moves": [{"product_id": product_id, "product_uom_qty": 1}],
            },
            headers=admin,
        )

        assert response.status_code == 422
        assert response.json()["errors"]["operation_type_id"] == [
            "The selected operation type does not match this resource."
        ]

    def test_configurable_product_is_rejected(self, client, admin, database, seed):
        template = ProductFactory.create(database, seed, name="Chair", is_configurable=True)

        response = client.post(
            OPERATION_PATHS["delivery"],
            json={"moves": [{"product_id": template, "product_uom_qty": 1}]},
            headers=admin,
        )

        assert response.status_code == 422
        assert "moves.0.product_id" in response.json()["errors"]

    def test_move_uom_is_converted_to_product_uom(self, client, admin, seed, factory, product_id):
        receipt = factory.receipt(
            product_id, 2, moves=[{"product_id": product_id, "product_uom_qty": 2, "uom_id": seed.dozens_id}]
        )

        move = factory.show("receipt", receipt["id"])["moves"][0]
        assert move["uom_id"] == seed.dozens_id
        assert move["product_qty"] == 24

    def test_move_uom_of_another_category_is_rejected(self, client, admin, seed, product_id):
        response = client.post(
            OPERATION_PATHS["receipt"],
            json={"moves": [{"product_id": product_id, "product_uom_qty": 2, "uom_id": seed.kg_id}]},
            headers=admin,
        )

        assert response.status_code == 422
        assert "moves.0.uom_id" in response.json()["errors"]

    def test_other_resource_ids_are_not_found(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 1)

        response = client.get(f"{OPERATION_PATHS['delivery']}/{receipt['id']}", headers=admin)

        assert response.status_code == 404
        assert response.json() == {"message": "Not found."}

    def test_update_syncs_moves(self, client, admin, database, seed, factory, product_id):
        other = ProductFactory.create(database, seed, name="Lamp")
        receipt = factory.receipt(product_id, 4)
        move = factory.show("receipt", receipt["id"])["moves"][0]

        response = client.patch(
            f"{OPERATION_PATHS['receipt']}/{receipt['id']}",
            json={
                "origin": "PO-REF",
                "moves": [
                    {"id": move["id"], "product_id": product_id, "product_uom_qty": 6},
                    {"product_id": other, "product_uom_qty": 1},
                ],
            },
            headers=admin,
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Receipt updated successfully."
        shown = factory.show("receipt", receipt["id"])
        assert shown["origin"] == "PO-REF"
        assert [(m["product_id"], m["product_uom_qty"]) for m in shown["moves"]] == [(product_id, 6), (other, 1)]
        assert shown["moves"][0]["id"] == move["id"]

        response = client.put(
            f"{OPERATION_PATHS['receipt']}/{receipt['id']}",
            json={"moves": [{"product_id": other, "product_uom_qty": 2}]},
            headers=admin,
        )
        assert response.status_code == 200
        moves = factory.show("receipt", receipt["id"])["moves"]
        assert len(moves) == 1
        assert moves[0]["product_id"] == other

    def test_moves_added_after_todo_are_confirmed(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 1, state="todo")
        move = factory.show("receipt", receipt["id"])["moves"][0]

        client.patch(
            f"{OPERATION_PATHS['receipt']}/{receipt['id']}",
            json={"moves": [
                {"id": move["id"], "product_id": product_id, "product_uom_qty": 1},
                {"product_id": product_id, "product_uom_qty": 5},
            ]},
            headers=admin,
        )

        shown = factory.show("receipt", receipt["id"])
        assert [m["state"] for m in shown["moves"]] == ["assigned", "assigned"]
        assert shown["state"] == "assigned"

    def test_done_operations_refuse_updates_and_deletes(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 2, state="done")
        path = f"{OPERATION_PATHS['receipt']}/{receipt['id']}"

        response = client.patch(path, json={"origin": "x"}, headers=admin)
        assert response.status_code == 422
        assert response.json()["message"] == "Done or canceled operations cannot be updated."

        response = client.delete(path, headers=admin)
        assert response.status_code == 422
        assert response.json()["message"] == "Done operations cannot be deleted."

    def test_delete_releases_reservation(self, client, admin, database, seed, factory, product_id):
        quant_id = QuantityFactory.create(database, product_id, seed.stock_location_id, 10)
        delivery = factory.delivery(product_id, 4, state="todo")
        assert QuantityFactory.get(database, quant_id).reserved_quantity == 4

        response = client.delete(f"{OPERATION_PATHS['delivery']}/{delivery['id']}", headers=admin)

        assert response.status_code == 200
        assert response.json() == {"message": "Delivery deleted successfully."}
        assert QuantityFactory.get(database, quant_id).reserved_quantity == 0
        assert client.get(f"{OPERATION_PATHS['delivery']}/{delivery['id']}", headers=admin).status_code == 404


class TestGuards:
    def test_todo_requires_draft(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 1, state="todo")

        response = client.post(f"{OPERATION_PATHS['receipt']}/{receipt['id']}/todo", headers=admin)

        assert response.status_code == 422
        assert response.json() == {"message": "Only draft operations can be set to todo."}

    def test_todo_requires_moves(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 1, moves=[])

        response = client.post(f"{OPERATION_PATHS['receipt']}/{receipt['id']}/todo", headers=admin)

        assert response.status_code == 422
        assert response.json()["message"] == "Cannot set operation to todo without moves."

    def test_check_availability_requires_confirmed_or_assigned(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 1)

        response = client.post(f"{OPERATION_PATHS['receipt']}/{receipt['id']}/check-availability", headers=admin)

        assert response.status_code == 422
        assert response.json()["message"] == "Only confirmed or assigned operations can check availability."

    def test_check_availability_requires_eligible_moves(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 1, state="todo")
        assert receipt["state"] == "assigned"

        response = client.post(f"{OPERATION_PATHS['receipt']}/{receipt['id']}/check-availability", headers=admin)

        assert response.status_code == 422
        assert response.json()["message"] == "No operation moves are eligible for availability check."

    def test_validate_refuses_closed_operations(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 1, state="done")

        response = client.post(f"{OPERATION_PATHS['receipt']}/{receipt['id']}/validate", headers=admin)

        assert response.status_code == 422
        assert response.json()["message"] == "Only non-done and non-canceled operations can be validated."

    def test_cancel_refuses_closed_operations(self, client, admin, factory, product_id):
        receipt = factory.receipt(product_id, 1)
        path = f"{OPERATION_PATHS['receipt']}/{receipt['id']}"

        response = client.post(f"{path}/cancel", headers=admin)
        assert response.status_code == 200
        assert response.json()["message"] == "Receipt canceled successfully."
        assert response.json()["data"]["state"] == "canceled"

        response = client.post(f"{path}/cancel", headers=admin)
        assert response.status_code == 422
        assert response.json()["message"] == "Only non-done and non-canceled operations can be canceled."

        response = client.patch(path, json={"origin": "x"}, headers=admin)
        assert response.status_code == 422
        assert response.json()["message"] == "Done or canceled operations cannot be updated."

    def test_return_requires_done(self, client, admin, factory, product_id):
        delivery = factory.delivery(product_id, 1)

        response = client.post(f"{OPERATION_PATHS['delivery']}/{delivery['id']}/return", headers=admin)

        assert response.status_code == 422
        assert response.json()["message"] == "Only done operations can be returned."

    @pytest.mark.parametrize("kind,label", KINDS)
    def test_action_messages(self, client, admin, factory, product_id, kind, label):
        operation = factory._create(kind, product_id, 1)
        path = f"{OPERATION_PATHS[kind]}/{operation['id']}"

        response = client.post(f"{path}/todo", headers=admin)
        assert response.json()["message"] == f"{label} set to todo successfully."

        response = client.post(f"{path}/validate", headers=admin)
        assert response.status_code == 200
        assert response.json()["message"] == f"{label} validated successfully."
        assert response.json()["data"]["state"] == "done"

    def test_actions_need_update_permission(self, client, acting_as, factory, product_id):
        receipt = factory.receipt(product_id, 1)
        headers = acting_as(["view_inventory_receipt", "view_any_inventory_receipt"])

        response = client.post(f"{OPERATION_PATHS['receipt']}/{receipt['id']}/todo", headers=headers)

        assert response.status_code == 403


class TestListing:
    def test_only_operations_of_the_resource_are_listed(self, client, admin, factory, product_id):
        factory.receipt(product_id, 1)
        factory.receipt(product_id, 2)
        factory.delivery(product_id, 3)

        response = client.get(OPERATION_PATHS["receipt"], headers=admin)

        body = response.json()
        assert body["meta"]["total"] == 2
        assert {op["name"] for op in body["data"]} == {"WH/IN/00001", "WH/IN/00002"}
        assert body["links"]["first"].endswith("?page=1")

    def test_filters_sorting_and_pagination(self, client, admin, factory, product_id):
        first = factory.receipt(product_id, 1)
        second = factory.receipt(product_id, 1, state="todo")
        factory.receipt(product_id, 1)

        response = client.get(OPERATION_PATHS["receipt"], params={"filter[state]": "assigned"}, headers=admin)
        assert [op["id"] for op in response.json()["data"]] == [second["id"]]

        response = client.get(OPERATION_PATHS["receipt"], params={"filter[state]": "draft,assigned"}, headers=admin)
        assert response.json()["meta"]["total"] == 3

        response = client.get(OPERATION_PATHS["receipt"], params={"filter[name]": "in/00001"}, headers=admin)
        assert [op["id"] for op in response.json()["data"]] == [first["id"]]

        response = client.get(OPERATION_PATHS["receipt"], params={"sort": "-id", "per_page": 2}, headers=admin)
        body = response.json()
        assert [op["id"] for op in body["data"]] == [first["id"] + 2, second["id"]]
        assert body["meta"]["last_page"] == 2
        assert body["links"]["next"].endswith("?page=2")

    def test_includes_are_loaded(self, client, admin, factory, product_id):
        factory.receipt(product_id, 1)

        response = client.get(
            OPERATION_PATHS["receipt"],
            params={"include": "operationType,moves.product,sourceLocation"},
            headers=admin,
        )

        item = response.json()["data"][0]
        assert item["operation_type"]["type"] == "incoming"
        assert item["moves"][0]["product"]["id"] == product_id
        assert item["source_location"]["type"] == "supplier"

    @pytest.mark.parametrize("params", [
        {"filter[unknown]": "1"},
        {"sort": "origin"},
        {"include": "secrets"},
    ])
    def test_unknown_query_parameters_are_rejected(self, client, admin, params):
        response = client.get(OPERATION_PATHS["receipt"], params=params, headers=admin)

        assert response.status_code == 400


class TestMovesEndpoint:
    def test_lists_move_lines_with_filters(self, client, admin, seed, factory, product_id):
        receipt = factory.receipt(product_id, 5, state="done")

        response = client.get(
            f"{API}/inventories/moves",
            params={"filter[operation_id]": receipt["id"], "include": "move,lot"},
            headers=admin,
        )

        assert response.status_code == 200
        lines = response.json()["data"]
        assert len(lines) == 1
        assert lines[0]["qty"] == 5
        assert lines[0]["state"] == "done"
        assert lines[0]["move"]["operation_id"] == receipt["id"]
        assert lines[0]["lot"] is None

    def test_location_filter_matches_either_side(self, client, admin, seed, factory, product_id):
        factory.receipt(product_id, 5, state="done")
        factory.delivery(product_id, 2, state="done")

        response = client.get(
            f"{API}/inventories/moves",
            params={"filter[location_id]": seed.stock_location_id},
            headers=admin,
        )
        assert response.json()["meta"]["total"] == 2

        response = client.get(
            f"{API}/inventories/moves",
            params={"filter[location_id]": seed.customer_location_id},
            headers=admin,
        )
        assert response.json()["meta"]["total"] == 1

    def test_moves_need_permission(self, client, acting_as):
        response = client.get(f"{API}/inventories/moves", headers=acting_as(["view_any_inventory_receipt"]))

        assert response.status_code == 403

    def test_warehouse_filter(self, client, admin, seed, factory, product_id):
        second = client.post(
            f"{API}/inventories/warehouses", json={"name": "Second", "code": "W2"}, headers=admin
        ).json()["data"]
        incoming = client.get(
            f"{API}/inventories/operation-types",
            params={"filter[warehouse_id]": second["id"], "filter[type]": "incoming"},
            headers=admin,
        ).json()["data"][0]
        factory.receipt(product_id, 5, state="done")
        other = factory.receipt(product_id, 2, state="done", operation_type_id=incoming["id"])

        response = client.get(
            f"{API}/inventories/moves", params={"filter[warehouse_id]": second["id"]}, headers=admin
        )

        lines = response.json()["data"]
        assert [line["operation_id"] for line in lines] == [other["id"]]
        assert lines[0]["qty"] == 2
        response = client.get(
            f"{API}/inventories/moves", params={"filter[warehouse_id]": seed.warehouse_id}, headers=admin
        )
        assert response.json()["meta"]["total"] == 1

    @pytest.mark.parametrize("include", MOVE_INCLUDES)
    def test_every_include_is_served(self, client, admin, factory, product_id, include):
        receipt = factory.receipt(product_id, 5, state="done")

        response = client.get(
            f"{API}/inventories/moves",
            params={"filter[operation_id]": receipt["id"], "include": include},
            headers=admin,
        )

        assert response.status_code == 200, response.text
        line = response.json()["data"][0]
        node = line
        for segment in include.split("."):
            key = _snake(segment)
            assert key in node
            node = node[key]
        if include.startswith("move"):
            assert line["move"]["id"] == line["move_id"]
            assert line["move"]["product_uom_qty"] == 5


def _snake(segment):
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in segment)


class TestOperationIncludes:
    @pytest.mark.parametrize("include", OPERATION_INCLUDES)
    def test_every_include_is_served_on_list_and_show(self, client, admin, factory, product_id, include):
        receipt = factory.receipt(product_id, 5, state="done")
        key = "return_of" if include == "return" else _snake(include.split(".")[0])

        listed = client.get(
            OPERATION_PATHS["receipt"],
            params={"filter[id]": receipt["id"], "include": include},
            headers=admin,
        )
        shown = client.get(
            f"{OPERATION_PATHS['receipt']}/{receipt['id']}", params={"include": include}, headers=admin
        )

        assert listed.status_code == 200, listed.text
        assert shown.status_code == 200, shown.text
        assert key in listed.json()["data"][0]
        assert key in shown.json()["data"]


class TestRouting:
    def test_app_serves_every_operation_kind(self, client, admin):
        paths = {route.path for route in app.routes}

        for kind_path in OPERATION_PATHS.values():
            assert kind_path in paths
            assert f"{kind_path}/{{operation_id}}/validate" in paths
            assert client.get(kind_path, headers=admin).status_code == 200
