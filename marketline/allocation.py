"""Allocation of catalog stock to requested order lines.

Each requested line is classified independently, in input order, against the
product found for its exact (name, category). The result keeps the four
outcome kinds explicit so callers never have to infer them from which fields
happen to be present.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from .domain import (
    Allocation,
    AllocationOutcome,
    FulfilledLine,
    FullyAllocated,
    PartiallyAllocated,
    Product,
    RequestedLine,
    ShortageRecord,
    Unavailable,
    ZeroAvailable,
)

ProductLookup = Callable[[str, str], Optional[Product]]


def allocate_line(requested: RequestedLine, product: Optional[Product]) -> AllocationOutcome:
    if product is None:
        return Unavailable(name=requested.name, wanted_quantity=requested.quantity)

    available = min(product.stock, requested.quantity)
    if available == 0:
        return ZeroAvailable(
            shortage=ShortageRecord(
                name=requested.name,
                available_quantity=0,
                wanted_quantity=requested.quantity,
            )
        )

    line = FulfilledLine(
        product_id=product.id,
        name=product.name,
        category=product.category,
        quantity=available,
        unit_price=product.price,
    )
    if available == requested.quantity:
        return FullyAllocated(line=line)

    return PartiallyAllocated(
        line=line,
        shortage=ShortageRecord(
            name=requested.name,
            available_quantity=available,
            wanted_quantity=requested.quantity,
            remaining_quantity=requested.quantity - available,
        ),
    )


def allocate(lines: Iterable[RequestedLine], lookup: ProductLookup) -> Allocation:
    outcomes: List[AllocationOutcome] = []
    in_stock: List[FulfilledLine] = []
    out_of_stock: List[ShortageRecord] = []
    total = Decimal("0")

    for requested in lines:
        outcome = allocate_line(requested, lookup(requested.name, requested.category))
        outcomes.append(outcome)

        if isinstance(outcome, (FullyAllocated, PartiallyAllocated)):
            in_stock.append(outcome.line)
            total += outcome.line.unit_price * outcome.line.quantity
        if isinstance(outcome, (Unavailable, PartiallyAllocated, ZeroAvailable)):
            out_of_stock.append(outcome.shortage)

    return Allocation(
        outcomes=outcomes,
        in_stock=in_stock,
        out_of_stock=out_of_stock,
        total_amount=total.quantize(Decimal("0.01")),
    )
