from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from .domain import Product
from .providers import Clock, IdProvider
from .repositories import CatalogRepository


class CatalogSeedItem(BaseModel):
    name: str
    category: str
    price: Decimal
    stock: int = Field(ge=0)
    description: Optional[str] = None


class CatalogSeed(BaseModel):
    owner_id: str = "seed"
    items: List[CatalogSeedItem]


def load_catalog_seed(path: str) -> CatalogSeed:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return CatalogSeed(**data)


def seed_catalog_if_empty(catalog: CatalogRepository, path: str, clock: Clock, ids: IdProvider) -> int:
    if not path or not Path(path).exists():
        return 0
    if catalog.count():
        return 0

    seed = load_catalog_seed(path)
    now = clock.now()
    for item in seed.items:
        catalog.add(
            Product(
                id=ids.new_id(),
                name=item.name,
                category=item.category,
                price=item.price,
                stock=item.stock,
                description=item.description,
                owner_id=seed.owner_id,
                created_at=now,
                updated_at=now,
            )
        )
    return len(seed.items)
