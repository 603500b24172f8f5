from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

from schemas import Product, User

T = TypeVar("T")


def _contains(term: str, *fields: str) -> bool:
    return any(term in field.lower() for field in fields)


def filter_users(records: Iterable[User], role: Optional[str] = None,
                 search: Optional[str] = None) -> List[User]:
    result = list(records)
    if role:
        role = role.lower()
        result = [u for u in result if u.role.value == role]
    if search:
        term = search.lower()
        result = [u for u in result if _contains(term, u.name, u.email)]
    return result


def filter_products(records: Iterable[Product], category: Optional[str] = None,
                    in_stock: Optional[bool] = None, min_price: Optional[float] = None,
                    max_price: Optional[float] = None, search: Optional[str] = None) -> List[Product]:
    result = list(records)
    if category:
        category = category.lower()
        result = [p for p in result if p.category.lower() == category]
    if in_stock is not None:
        result = [p for p in result if p.in_stock == in_stock]
    if min_price is not None:
        result = [p for p in result if p.price >= min_price]
    if max_price is not None:
        result = [p for p in result if p.price <= max_price]
    if search:
        term = search.lower()
        result = [p for p in result if _contains(term, p.name, p.description)]
    return result


def paginate(records: Sequence[T], offset: int = 0,
             limit: Optional[int] = None) -> Tuple[List[T], dict]:
    """Slice ``records`` to ``[offset, offset + limit)``.

    Returns the page and the ``pagination`` block of the list envelope;
    ``total`` is the size before slicing.
    """
    end = len(records) if limit is None else offset + limit
    page = list(records[offset:end])
    return page, {
        "total": len(records),
        "count": len(page),
        "offset": offset,
        "limit": limit,
    }
