"""Tests for scrap orders."""

import pytest

from tests.factories import API, ProductFactory, QuantityFactory, stock_quantity

SCRAPS = f"{API}/inventories/scraps"


@pytest.fixture
def product_id(database, seed):
    return ProductFactory.create(database, seed)


def _create(client, headers, product_id, qty=2, **fields):
    response = client.post(SCRAPS, json={"product_id": product_id, "qty": qty, **fields}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestScraps:
    def test_create_fills_defaults(self, client, admin, seed, product_id):
        response = client.post(SCRAPS, json={"product_id": product_id, "qty": 2}, headers=admin)

        assert response.status_code == 201
        assert response.json()["message"] == "Scrap created successfully."
        scrap = response.json()["data"]
        assert scrap["name"] == "SP/00001"
        assert scrap["state"] == "draft"
        assert scrap["uom_id"] == seed.units_id
        assert scrap["source_location_id"] == seed.stock_location_id
        assert scrap["destination_location_id"] == seed.scrap_location_id
        assert scrap["company_id"] == seed.company_id

    def test_names_are_sequential(self, client, admin, product_id):
        _create(client, admin, product_id)

        assert _create(client, admin, product_id)["name"] == "SP/00002"

    def test_validate_moves_stock_to_scrap(self, client, admin, database, seed, product_id):
        QuantityFactory.create(database, product_id, seed.stock_location_id, 10)
        scrap = _create(client, admin, product_id, qty=3)

        response = client.post(f"{SCRAPS}/{scrap['id']}/validate", headers=admin)

        assert response.status_code == 200
        assert response.json()["message"] == "Scrap validated successfully."
        assert response.json()["data"]["state"] == "done"
        assert response.json()["data"]["closed_at"] is not None
        assert stock_quantity(client, admin, product_id, seed.stock_location_id) == 7
        assert stock_quantity(client, admin, product_id, seed.scrap_location_id) == 3

        lines = client.get(
            f"{API}/inventories/moves", params={"filter[scrap_id]": scrap["id"]}, headers=admin
        ).json()["data"]
        assert len(lines) == 1
        assert lines[0]["reference"] == "SP/00001"
        assert lines[0]["qty"] == 3

    def test_validate_in_dozens_converts_to_units(self, client, admin, database, seed, product_id):
        QuantityFactory.create(database, product_id, seed.stock_location_id, 30)
        scrap = _create(client, admin, product_id, qty=2, uom_id=seed.dozens_id)

        client.post(f"{SCRAPS}/{scrap['id']}/validate", headers=admin)

        assert stock_quantity(client, admin, product_id, seed.stock_location_id) == 6

    def test_insufficient_stock_is_refused(self, client, admin, database, seed, product_id):
        QuantityFactory.create(database, product_id, seed.stock_location_id, 1)
        scrap = _create(client, admin, product_id, qty=2)

        response = client.post(f"{SCRAPS}/{scrap['id']}/validate", headers=admin)

        assert response.status_code == 422
        assert response.json()["message"] == "Insufficient source quantity for this scrap."
        assert stock_quantity(client, admin, product_id, seed.stock_location_id) == 1

    def test_done_scrap_is_locked(self, client, admin, database, seed, product_id):
        QuantityFactory.create(database, product_id, seed.stock_location_id, 10)
        scrap = _create(client, admin, product_id)
        client.post(f"{SCRAPS}/{scrap['id']}/validate", headers=admin)

        update = client.patch(f"{SCRAPS}/{scrap['id']}", json={"qty": 1}, headers=admin)
        delete = client.delete(f"{SCRAPS}/{scrap['id']}", headers=admin)
        again = client.post(f"{SCRAPS}/{scrap['id']}/validate", headers=admin)

        assert update.json()["message"] == "Done scraps cannot be updated."
        assert delete.json()["message"] == "Done scraps cannot be deleted."
        assert again.json()["message"] == "Only draft scraps can be validated."

    def test_update_and_delete_draft(self, client, admin, product_id):
        scrap = _create(client, admin, product_id)

        response = client.patch(f"{SCRAPS}/{scrap['id']}", json={"qty": 5, "origin": "Damaged"}, headers=admin)
        assert response.json()["message"] == "Scrap updated successfully."
        assert response.json()["data"]["qty"] == 5
        assert response.json()["data"]["origin"] == "Damaged"

        response = client.delete(f"{SCRAPS}/{scrap['id']}", headers=admin)
        assert response.json() == {"message": "Scrap deleted successfully."}
        assert client.get(f"{SCRAPS}/{scrap['id']}", headers=admin).status_code == 404

    def test_quantity_below_one_is_refused(self, client, admin, product_id):
        response = client.post(SCRAPS, json={"product_id": product_id, "qty": 0}, headers=admin)

        assert response.status_code == 422
        assert "qty" in response.json()["errors"]

    def test_unknown_location_is_refused(self, client, admin, product_id):
        response = client.post(
            SCRAPS, json={"product_id": product_id, "qty": 1, "source_location_id": 9999}, headers=admin
        )

        assert response.status_code == 422
        assert "source_location_id" in response.json()["errors"]
