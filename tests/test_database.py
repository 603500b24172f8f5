"""
Unit tests for the in-memory store.
"""

from database import Collection, Database
from schemas import Product, User


def make_user(user_id: int, email: str = None) -> User:
    return User(id=user_id, name=f"User {user_id}", email=email or f"u{user_id}@example.com")


class TestCollection:
    """Tests for Collection."""

    def test_next_id_on_empty_collection(self):
        assert Collection("users").next_id() == 1

    def test_next_id_after_seed(self):
        users = Collection("users", [make_user(1), make_user(7), make_user(3)])
        assert users.next_id() == 8

    def test_ids_not_reused_after_deleting_highest(self):
        users = Collection("users", [make_user(1), make_user(2)])
        users.remove_at(users.find_index_by_id(2))
        assert users.next_id() == 3

    def test_ids_not_reused_after_emptying(self):
        users = Collection("users", [make_user(1)])
        users.remove_at(0)
        assert len(users) == 0
        assert users.next_id() == 2

    def test_find_by_id(self):
        users = Collection("users", [make_user(1), make_user(2)])
        assert users.find_by_id(2).name == "User 2"
        assert users.find_by_id(5) is None

    def test_find_index_by_id(self):
        users = Collection("users", [make_user(4), make_user(9)])
        assert users.find_index_by_id(9) == 1
        assert users.find_index_by_id(1) is None

    def test_find_predicate(self):
        users = Collection("users", [make_user(1, "a@b.io"), make_user(2, "c@d.io")])
        assert users.find(lambda u: u.email == "c@d.io").id == 2
        assert users.find(lambda u: u.email == "nobody@d.io") is None

    def test_all_returns_copy(self):
        users = Collection("users", [make_user(1)])
        snapshot = users.all()
        snapshot.clear()
        assert len(users) == 1

    def test_replace_and_remove(self):
        users = Collection("users", [make_user(1), make_user(2)])
        users.replace_at(0, users[0].model_copy(update={"name": "Renamed"}))
        assert users.find_by_id(1).name == "Renamed"

        removed = users.remove_at(1)
        assert removed.id == 2
        assert [u.id for u in users.all()] == [1]


class TestDatabase:
    """Tests for Database."""

    def test_empty(self):
        db = Database()
        assert len(db.users) == 0
        assert db.products.next_id() == 1

    def test_seeded(self):
        db = Database.seeded()
        assert [u.email for u in db.users.all()] == [
            "john@example.com",
            "jane@example.com",
            "mike@example.com",
        ]
        assert [p.name for p in db.products.all()] == [
            "Gaming Laptop",
            "Coffee Maker",
            "Wireless Headphones",
        ]
        assert db.users.next_id() == 4
        assert db.products.next_id() == 4

    def test_seeded_instances_are_isolated(self):
        first, second = Database.seeded(), Database.seeded()
        first.users.remove_at(0)
        assert len(second.users) == 3

    def test_record_json_uses_camel_case(self):
        product = Database.seeded().products.find_by_id(3)
        data = product.to_json()
        assert data["inStock"] is False
        assert data["createdAt"].endswith("Z")
        assert "updatedAt" not in data
        assert isinstance(product, Product)
