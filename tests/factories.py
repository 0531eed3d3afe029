"""
Record builders for tests.

Database records are created directly in a session (`ProductFactory`,
`QuantityFactory`, `LotFactory`); operations, agreements and orders are
created through the API so their defaults and names match production.
"""

from decimal import Decimal
from datetime import datetime
from typing import Optional

from erp.models import Lot, Product, ProductQuantity

API = "/admin/api/v1"

OPERATION_PATHS = {
    "receipt": f"{API}/inventories/receipts",
    "delivery": f"{API}/inventories/deliveries",
    "internal": f"{API}/inventories/internal-transfers",
    "dropship": f"{API}/inventories/dropships",
}


class ProductFactory:
    @staticmethod
    def create(database, seed, **overrides) -> int:
        values = dict(
            name="Desk",
            type="goods",
            tracking="none",
            is_configurable=False,
            is_storable=True,
            uom_id=seed.units_id,
            uom_po_id=seed.units_id,
            company_id=seed.company_id,
            price=Decimal("100"),
            cost=Decimal("60"),
        )
        values.update(overrides)

        async def _create(session):
            product = Product(**values)
            session.add(product)
            await session.flush()
            return product.id

        return database.run(_create)


class LotFactory:
    @staticmethod
    def create(database, seed, product_id: int, name: str = "LOT-001") -> int:
        async def _create(session):
            lot = Lot(name=name, product_id=product_id, uom_id=seed.units_id, company_id=seed.company_id)
            session.add(lot)
            await session.flush()
            return lot.id

        return database.run(_create)


class QuantityFactory:
    @staticmethod
    def create(database, product_id: int, location_id: int, quantity, lot_id: Optional[int] = None,
               reserved=0) -> int:
        async def _create(session):
            quant = ProductQuantity(
                product_id=product_id,
                location_id=location_id,
                lot_id=lot_id,
                quantity=Decimal(str(quantity)),
                reserved_quantity=Decimal(str(reserved)),
                counted_quantity=Decimal("0"),
                inventory_diff_quantity=Decimal("0"),
                inventory_quantity_set=False,
                incoming_at=datetime.utcnow(),
            )
            session.add(quant)
            await session.flush()
            return quant.id

        return database.run(_create)

    @staticmethod
    def get(database, quant_id: int) -> ProductQuantity:
        async def _get(session):
            return await session.get(ProductQuantity, quant_id)

        return database.run(_get)


class OperationFactory:
    """
    Create operations through the API.

        factory = OperationFactory(client, admin)
        receipt = factory.receipt(product_id, 10)
        delivery = factory.delivery(product_id, 5, state="todo")
    """

    def __init__(self, client, headers):
        self.client = client
        self.headers = headers

    def _create(self, kind: str, product_id: int, qty, state: str = "draft", **fields) -> dict:
        payload = dict(fields)
        payload.setdefault("moves", [{"product_id": product_id, "product_uom_qty": qty}])
        response = self.client.post(OPERATION_PATHS[kind], json=payload, headers=self.headers)
        assert response.status_code == 201, response.text
        operation = response.json()["data"]

        if state in ("todo", "done"):
            response = self.client.post(f"{OPERATION_PATHS[kind]}/{operation['id']}/todo", headers=self.headers)
            assert response.status_code == 200, response.text
            operation = response.json()["data"]
        if state == "done":
            response = self.client.post(f"{OPERATION_PATHS[kind]}/{operation['id']}/validate", headers=self.headers)
            assert response.status_code == 200, response.text
            operation = response.json()["data"]
        return operation

    def receipt(self, product_id: int, qty=10, **kwargs) -> dict:
        return self._create("receipt", product_id, qty, **kwargs)

    def delivery(self, product_id: int, qty=10, **kwargs) -> dict:
        return self._create("delivery", product_id, qty, **kwargs)

    def internal(self, product_id: int, qty=10, **kwargs) -> dict:
        return self._create("internal", product_id, qty, **kwargs)

    def dropship(self, product_id: int, qty=10, **kwargs) -> dict:
        return self._create("dropship", product_id, qty, **kwargs)

    def show(self, kind: str, operation_id: int, include: str = "moves") -> dict:
        response = self.client.get(
            f"{OPERATION_PATHS[kind]}/{operation_id}", params={"include": include}, headers=self.headers
        )
        assert response.status_code == 200, response.text
        return response.json()["data"]


def requisition_payload(seed, product_id: int, **overrides) -> dict:
    payload = {
        "partner_id": seed.partner_id,
        "type": "blanket_order",
        "currency_id": seed.currency_id,
        "company_id": seed.company_id,
        "lines": [{"product_id": product_id, "qty": 5, "price_unit": 20}],
    }
    payload.update(overrides)
    return payload


def purchase_order_payload(seed, product_id: int, **overrides) -> dict:
    payload = {
        "partner_id": seed.partner_id,
        "currency_id": seed.currency_id,
        "company_id": seed.company_id,
        "ordered_at": "2026-01-15T10:00:00",
        "lines": [{"product_id": product_id, "product_qty": 10, "price_unit": 12.5}],
    }
    payload.update(overrides)
    return payload


def stock_quantity(client, headers, product_id: int, location_id: int) -> float:
    """Current quant quantity of a product at a location (0 when none)."""
    response = client.get(
        f"{API}/inventories/quantities",
        params={"filter[product_id]": product_id, "filter[location_id]": location_id},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return sum(item["quantity"] for item in response.json()["data"])
