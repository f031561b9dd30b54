from __future__ import annotations

from dataclasses import dataclass, field

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database as MongoDatabase


@dataclass
class DocumentDb:
    url: str
    database: str
    client: MongoClient = field(init=False)

    def __post_init__(self) -> None:
        self.client = MongoClient(self.url, tz_aware=True)

    @property
    def db(self) -> MongoDatabase:
        return self.client[self.database]

    @property
    def products(self) -> Collection:
        return self.db["products"]

    def verify_connectivity(self) -> None:
        self.client.admin.command("ping")

    def close(self) -> None:
        self.client.close()

    def ensure_indexes(self) -> None:
        self.products.create_index([("name", ASCENDING), ("category", ASCENDING)], unique=True)
        self.products.create_index([("category", ASCENDING)])
