from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

from bson.decimal128 import Decimal128
from pymongo import ReturnDocument

from ..domain import Product
from ..providers import Clock
from .db import DocumentDb


def product_from_document(document: Dict[str, Any]) -> Product:
    price = document["price"]
    if isinstance(price, Decimal128):
        price = price.to_decimal()
    return Product(
        id=str(document["_id"]),
        name=document["name"],
        category=document["category"],
        price=Decimal(str(price)),
        stock=int(document.get("stock", 0)),
        description=document.get("description"),
        owner_id=document["owner_id"],
        created_at=document["created_at"],
        updated_at=document["updated_at"],
    )


def product_to_document(product: Product) -> Dict[str, Any]:
    return {
        "_id": product.id,
        "name": product.name,
        "category": product.category,
        "price": Decimal128(str(product.price)),
        "stock": product.stock,
        "description": product.description,
        "owner_id": product.owner_id,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


class MongoCatalogRepository:
    def __init__(self, db: DocumentDb, clock: Clock) -> None:
        self._products = db.products
        self._clock = clock

    def add(self, product: Product) -> Product:
        self._products.insert_one(product_to_document(product))
        return product

    def get(self, product_id: str) -> Optional[Product]:
        document = self._products.find_one({"_id": product_id})
        return product_from_document(document) if document else None

    def find(self, name: str, category: str) -> Optional[Product]:
        document = self._products.find_one({"name": name, "category": category})
        return product_from_document(document) if document else None

    def search_by_name(self, fragment: str) -> List[Product]:
        cursor = self._products.find({"name": {"$regex": re.escape(fragment), "$options": "i"}})
        return [product_from_document(document) for document in cursor]

    def list_by_category(self, category: str) -> List[Product]:
        cursor = self._products.find({"category": {"$regex": f"^{re.escape(category)}$", "$options": "i"}})
        return [product_from_document(document) for document in cursor]

    def update(self, product: Product) -> Product:
        document = product_to_document(product)
        document.pop("_id")
        self._products.update_one({"_id": product.id}, {"$set": document})
        return product

    def delete(self, product_id: str) -> Optional[Product]:
        document = self._products.find_one_and_delete({"_id": product_id})
        return product_from_document(document) if document else None

    def increment_stock(self, product_id: str, amount: int) -> Optional[Product]:
        document = self._products.find_one_and_update(
            {"_id": product_id},
            {"$inc": {"stock": amount}, "$set": {"updated_at": self._clock.now()}},
            return_document=ReturnDocument.AFTER,
        )
        return product_from_document(document) if document else None

    def decrement_stock(self, product_id: str, amount: int) -> Optional[Product]:
        document = self._products.find_one_and_update(
            {"_id": product_id, "stock": {"$gte": amount}},
            {"$inc": {"stock": -amount}, "$set": {"updated_at": self._clock.now()}},
            return_document=ReturnDocument.AFTER,
        )
        return product_from_document(document) if document else None

    def set_stock(self, product_id: str, stock: int) -> Optional[Product]:
        document = self._products.find_one_and_update(
            {"_id": product_id},
            {"$set": {"stock": stock, "updated_at": self._clock.now()}},
            return_document=ReturnDocument.AFTER,
        )
        return product_from_document(document) if document else None

    def count(self) -> int:
        return self._products.count_documents({})
