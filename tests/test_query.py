"""
Unit tests for filtering and pagination.
"""

from database import seed_products, seed_users
from query import filter_products, filter_users, paginate


class TestFilterUsers:
    """Tests for filter_users."""

    def test_no_filters(self):
        assert len(filter_users(seed_users())) == 3

    def test_role_case_insensitive(self):
        result = filter_users(seed_users(), role="ADMIN")
        assert [u.id for u in result] == [1]

    def test_search_name_and_email(self):
        assert [u.id for u in filter_users(seed_users(), search="smith")] == [2]
        assert [u.id for u in filter_users(seed_users(), search="MIKE@")] == [3]

    def test_role_then_search(self):
        assert filter_users(seed_users(), role="user", search="john") == []

    def test_empty_values_do_not_filter(self):
        assert len(filter_users(seed_users(), role="", search="")) == 3

    def test_input_not_mutated(self):
        users = seed_users()
        filter_users(users, role="admin")
        assert len(users) == 3


class TestFilterProducts:
    """Tests for filter_products."""

    def test_category_and_stock(self):
        result = filter_products(seed_products(), category="electronics", in_stock=True)
        assert [p.id for p in result] == [1]

    def test_out_of_stock(self):
        assert [p.id for p in filter_products(seed_products(), in_stock=False)] == [3]

    def test_price_range(self):
        result = filter_products(seed_products(), min_price=89.99, max_price=199.99)
        assert [p.id for p in result] == [2, 3]

    def test_search_description(self):
        assert [p.id for p in filter_products(seed_products(), search="battery")] == [3]


class TestPaginate:
    """Tests for paginate."""

    def test_defaults_return_everything(self):
        page, pagination = paginate([1, 2, 3])
        assert page == [1, 2, 3]
        assert pagination == {"total": 3, "count": 3, "offset": 0, "limit": None}

    def test_window(self):
        page, pagination = paginate([1, 2, 3, 4, 5], offset=1, limit=2)
        assert page == [2, 3]
        assert pagination == {"total": 5, "count": 2, "offset": 1, "limit": 2}

    def test_window_clipped_at_end(self):
        page, pagination = paginate([1, 2, 3], offset=2, limit=10)
        assert page == [3]
        assert pagination["count"] == 1

    def test_offset_past_end(self):
        page, pagination = paginate([1, 2, 3], offset=10)
        assert page == []
        assert pagination["total"] == 3
        assert pagination["count"] == 0

    def test_zero_limit(self):
        page, pagination = paginate([1, 2, 3], limit=0)
        assert page == []
        assert pagination["limit"] == 0

    def test_count_property(self):
        items = list(range(7))
        for offset in range(10):
            for limit in range(9):
                _, pagination = paginate(items, offset=offset, limit=limit)
                expected = min(limit, len(items) - offset) if offset < len(items) else 0
                assert pagination["count"] == expected
