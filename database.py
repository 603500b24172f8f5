"""
In-memory datastore.

Each resource lives in a ``Collection``: an ordered list of pydantic records
with lookup by id. Nothing is persisted; a ``Database`` lives as long as the
process (or the test) that built it.
"""

from datetime import datetime, timezone
from typing import Callable, Generic, List, Optional, TypeVar

from schemas import Product, Record, Role, User

RecordT = TypeVar("RecordT", bound=Record)


class Collection(Generic[RecordT]):
    def __init__(self, name: str, records: Optional[List[RecordT]] = None):
        self.name = name
        self._records: List[RecordT] = []
        # Highest id ever stored, so ids freed by deletion are not handed out again.
        self._last_id = 0
        for record in records or []:
            self.insert(record)

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> RecordT:
        return self._records[index]

    def next_id(self) -> int:
        if self._last_id == 0:
            return 1
        return self._last_id + 1

    def insert(self, record: RecordT) -> RecordT:
        self._records.append(record)
        self._last_id = max(self._last_id, record.id)
        return record

    def find_by_id(self, record_id: int) -> Optional[RecordT]:
        index = self.find_index_by_id(record_id)
        return None if index is None else self._records[index]

    def find_index_by_id(self, record_id: int) -> Optional[int]:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                return index
        return None

    def find(self, predicate: Callable[[RecordT], bool]) -> Optional[RecordT]:
        return next((r for r in self._records if predicate(r)), None)

    def replace_at(self, index: int, record: RecordT) -> RecordT:
        self._records[index] = record
        return record

    def remove_at(self, index: int) -> RecordT:
        return self._records.pop(index)

    def all(self) -> List[RecordT]:
        """Return a copy of the records, in insertion order."""
        return list(self._records)


class Database:
    def __init__(self, users: Optional[List[User]] = None, products: Optional[List[Product]] = None):
        self.users: Collection[User] = Collection("users", users)
        self.products: Collection[Product] = Collection("products", products)

    @classmethod
    def seeded(cls) -> "Database":
        return cls(users=seed_users(), products=seed_products())


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def seed_users() -> List[User]:
    return [
        User(id=1, name="John Doe", email="john@example.com", role=Role.ADMIN,
             created_at=_ts("2024-01-15T10:30:00")),
        User(id=2, name="Jane Smith", email="jane@example.com", role=Role.USER,
             created_at=_ts("2024-02-10T14:20:00")),
        User(id=3, name="Mike Johnson", email="mike@example.com", role=Role.USER,
             created_at=_ts("2024-03-05T09:15:00")),
    ]


def seed_products() -> List[Product]:
    return [
        Product(id=1, name="Gaming Laptop", price=1299.99, category="Electronics", in_stock=True,
                description="High-performance gaming laptop with RTX graphics",
                created_at=_ts("2024-01-20T08:00:00")),
        Product(id=2, name="Coffee Maker", price=89.99, category="Kitchen", in_stock=True,
                description="Automatic drip coffee maker with programmable timer",
                created_at=_ts("2024-01-20T08:00:00")),
        Product(id=3, name="Wireless Headphones", price=199.99, category="Electronics", in_stock=False,
                description="Noise-canceling wireless headphones with 30-hour battery",
                created_at=_ts("2024-01-20T08:00:00")),
    ]


db = Database.seeded()


def get_db() -> Database:
    """FastAPI dependency; tests override it with an isolated ``Database``."""
    return db
