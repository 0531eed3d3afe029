"""计量单位换算"""

from decimal import Decimal
from typing import Optional

from erp.core.exceptions import FieldValidationError
from erp.models import UOM


def compute_quantity(
    qty,
    from_uom: Optional[UOM],
    to_uom: Optional[UOM],
    round: bool = True,
    rounding_method: str = "HALF-UP",
    field: str = "uom_id",
) -> Decimal:
    """
    数量换算 from_uom -> to_uom

    两个单位不属于同一类别时报字段错误
    """
    if from_uom is None or to_uom is None or from_uom.id == to_uom.id:
        return Decimal(str(qty or 0))
    if from_uom.category_id != to_uom.category_id:
        raise FieldValidationError.single(
            field,
            f"The unit of measure {from_uom.name} defined on the order line doesn't belong to "
            f"the same category as the unit of measure {to_uom.name} defined on the product.",
        )
    return from_uom.compute_quantity(qty, to_uom, round=round, rounding_method=rounding_method)
