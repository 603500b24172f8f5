import json
import logging
import math
import re
from datetime import datetime, timezone
from typing import Annotated, Any, List, Optional, Type, TypeVar
from urllib.parse import parse_qsl

import pydantic
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import VERSION, configure_logging, settings
from database import Database, get_db
from errors import ApiError, ConflictError, NotFoundError, ValidationError
from query import filter_products, filter_users, paginate
from schemas import Product, Role, User, utcnow

logger = logging.getLogger("storefront")
access_logger = logging.getLogger("storefront.access")

configure_logging(settings)

app = FastAPI(title="AI Backend API", version=VERSION, docs_url="/api-docs", redoc_url=None)
app.state.settings = settings

AVAILABLE_ENDPOINTS = [
    "GET /",
    "GET /health",
    "GET /api/users",
    "GET /api/users/:id",
    "POST /api/users",
    "PUT /api/users/:id",
    "DELETE /api/users/:id",
    "GET /api/products",
    "GET /api/products/:id",
    "POST /api/products",
    "PUT /api/products/:id",
    "DELETE /api/products/:id",
]

SECURITY_HEADERS = {
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
}


# Middleware (the last one registered runs first)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    access_logger.info("%s %s", request.method, request.url.path)
    try:
        return await call_next(request)
    except Exception as exc:
        # Answer here so the outer middleware still decorates the 500.
        return server_error(request, exc)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


# Utilities

EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
ID_RE = re.compile(r"-?[0-9]+")


def validate_email(email: str) -> bool:
    return EMAIL_RE.fullmatch(email) is not None


def parse_price(value: Any) -> Optional[float]:
    """Return ``value`` as a non-negative float, or None if it is not one."""
    if isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


def parse_role(value: str) -> Role:
    try:
        return Role(value.lower())
    except ValueError:
        raise ValidationError('Role must be either "admin" or "user"')


def parse_id(raw: str, resource: str) -> int:
    # int() alone would also take "0_1", " 1" and non-ASCII digits.
    if not ID_RE.fullmatch(raw):
        raise ValidationError(f"Invalid {resource} ID format")
    return int(raw)


def blank_to_none(value: Any) -> Any:
    return None if value == "" else value


# Query numbers where "?limit=" means the same as leaving the parameter out.
OptionalInt = Annotated[Optional[int], BeforeValidator(blank_to_none)]
OptionalFloat = Annotated[Optional[float], BeforeValidator(blank_to_none)]


def describe_errors(errors: List[dict]) -> str:
    error = errors[0]
    field = ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path"))
    if not field:
        return error["msg"]
    return f"Invalid value for {field}: {error['msg']}"


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def read_body(request: Request) -> dict:
    """Parse a JSON or form-encoded body into a dict; an empty body is ``{}``."""
    raw = await request.body()
    if not raw.strip():
        return {}
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/x-www-form-urlencoded"):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise ValidationError("Malformed request body")
        return dict(parse_qsl(text, keep_blank_values=True))
    if content_type and "json" not in content_type:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        raise ValidationError("Malformed JSON in request body")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# Models for requests

class RequestBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    def provided(self) -> dict:
        """Fields sent in the request with a non-null value."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class UserCreateRequest(RequestBody):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class UserUpdateRequest(RequestBody):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class ProductCreateRequest(RequestBody):
    name: Optional[str] = None
    price: Any = None
    category: Optional[str] = None
    in_stock: Optional[bool] = None
    description: Optional[str] = None


class ProductUpdateRequest(RequestBody):
    name: Optional[str] = None
    price: Any = None
    category: Optional[str] = None
    in_stock: Optional[bool] = None
    description: Optional[str] = None


BodyT = TypeVar("BodyT", bound=RequestBody)


def parse_body(model: Type[BodyT], data: dict) -> BodyT:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(describe_errors(exc.errors()))


# Error handlers

def route_not_found(request: Request) -> JSONResponse:
    url = request.url.path
    if request.url.query:
        url += "?" + request.url.query
    return JSONResponse(
        status_code=404,
        content={
            "success": False,
            "message": f"Route {request.method} {url} not found",
            "availableEndpoints": AVAILABLE_ENDPOINTS,
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Routing failures (no path, or no method on a path) share the 404 body.
    if not isinstance(exc, ApiError) and exc.status_code in (404, 405):
        return route_not_found(request)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"success": False, "message": describe_errors(exc.errors())})


def server_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    content = {"success": False, "message": "Something went wrong!"}
    if not request.app.state.settings.is_production:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Only reached for faults raised by the middleware themselves.
    return server_error(request, exc)


# Routes

@app.get("/")
def read_root():
    return {
        "message": "Welcome to the AI Backend API",
        "version": VERSION,
        "documentation": app.docs_url,
        "endpoints": {
            "health": "/health",
            "users": "/api/users",
            "products": "/api/products",
        },
    }


@app.get("/health")
def health(request: Request):
    return {
        "status": "OK",
        "timestamp": timestamp(),
        "version": VERSION,
        "environment": request.app.state.settings.environment,
    }


# Users endpoints

@app.get("/api/users")
async def list_users(
    role: Optional[str] = None,
    search: Optional[str] = None,
    limit: OptionalInt = Query(None, ge=0),
    offset: OptionalInt = Query(None, ge=0),
    db: Database = Depends(get_db),
):
    users = filter_users(db.users.all(), role=role, search=search)
    page, pagination = paginate(users, offset=offset or 0, limit=limit)
    return {"success": True, "data": [u.to_json() for u in page], "pagination": pagination}


@app.get("/api/users/{user_id}")
async def get_user(user_id: str, db: Database = Depends(get_db)):
    user = db.users.find_by_id(parse_id(user_id, "user"))
    if user is None:
        raise NotFoundError("User not found")
    return {"success": True, "data": user.to_json()}


@app.post("/api/users", status_code=201)
async def create_user(body: dict = Depends(read_body), db: Database = Depends(get_db)):
    payload = parse_body(UserCreateRequest, body)
    if not payload.name or not payload.email:
        raise ValidationError("Name and email are required")
    if not validate_email(payload.email):
        raise ValidationError("Invalid email format")
    role = parse_role(payload.role if payload.role is not None else Role.USER.value)

    email = payload.email.lower()
    if db.users.find(lambda u: u.email.lower() == email):
        raise ConflictError("User with this email already exists")

    user = db.users.insert(User(id=db.users.next_id(), name=payload.name, email=email, role=role))
    return {"success": True, "data": user.to_json(), "message": "User created successfully"}


@app.put("/api/users/{user_id}")
async def update_user(user_id: str, body: dict = Depends(read_body), db: Database = Depends(get_db)):
    user_id = parse_id(user_id, "user")
    index = db.users.find_index_by_id(user_id)
    if index is None:
        raise NotFoundError("User not found")

    changes = parse_body(UserUpdateRequest, body).provided()
    if "name" in changes and not changes["name"]:
        raise ValidationError("Name cannot be empty")
    if "email" in changes:
        if not validate_email(changes["email"]):
            raise ValidationError("Invalid email format")
        changes["email"] = changes["email"].lower()
    if "role" in changes:
        changes["role"] = parse_role(changes["role"])

    if "email" in changes:
        email = changes["email"]
        if db.users.find(lambda u: u.email.lower() == email and u.id != user_id):
            raise ConflictError("Email is already in use by another user")

    changes["updated_at"] = utcnow()
    user = db.users.replace_at(index, db.users[index].model_copy(update=changes))
    return {"success": True, "data": user.to_json(), "message": "User updated successfully"}


@app.delete("/api/users/{user_id}")
async def delete_user(user_id: str, db: Database = Depends(get_db)):
    index = db.users.find_index_by_id(parse_id(user_id, "user"))
    if index is None:
        raise NotFoundError("User not found")
    user = db.users.remove_at(index)
    return {"success": True, "message": "User deleted successfully", "data": {"id": user.id, "name": user.name}}


# Products endpoints

@app.get("/api/products")
async def list_products(
    category: Optional[str] = None,
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    min_price: OptionalFloat = Query(None, alias="minPrice"),
    max_price: OptionalFloat = Query(None, alias="maxPrice"),
    search: Optional[str] = None,
    limit: OptionalInt = Query(None, ge=0),
    offset: OptionalInt = Query(None, ge=0),
    db: Database = Depends(get_db),
):
    products = filter_products(
        db.products.all(),
        category=category,
        in_stock=in_stock,
        min_price=min_price,
        max_price=max_price,
        search=search,
    )
    page, pagination = paginate(products, offset=offset or 0, limit=limit)
    return {"success": True, "data": [p.to_json() for p in page], "pagination": pagination}


@app.get("/api/products/{product_id}")
async def get_product(product_id: str, db: Database = Depends(get_db)):
    product = db.products.find_by_id(parse_id(product_id, "product"))
    if product is None:
        raise NotFoundError("Product not found")
    return {"success": True, "data": product.to_json()}


@app.post("/api/products", status_code=201)
async def create_product(body: dict = Depends(read_body), db: Database = Depends(get_db)):
    payload = parse_body(ProductCreateRequest, body)
    price_missing = payload.price is None or (isinstance(payload.price, str) and not payload.price.strip())
    if not payload.name or price_missing or not payload.category:
        raise ValidationError("Name, price, and category are required")
    price = parse_price(payload.price)
    if price is None:
        raise ValidationError("Price must be a valid positive number")

    product = db.products.insert(Product(
        id=db.products.next_id(),
        name=payload.name,
        price=price,
        category=payload.category,
        in_stock=payload.in_stock if payload.in_stock is not None else True,
        description=payload.description or "",
    ))
    return {"success": True, "data": product.to_json(), "message": "Product created successfully"}


@app.put("/api/products/{product_id}")
async def update_product(product_id: str, body: dict = Depends(read_body), db: Database = Depends(get_db)):
    index = db.products.find_index_by_id(parse_id(product_id, "product"))
    if index is None:
        raise NotFoundError("Product not found")

    changes = parse_body(ProductUpdateRequest, body).provided()
    if "name" in changes and not changes["name"]:
        raise ValidationError("Name cannot be empty")
    if "category" in changes and not changes["category"]:
        raise ValidationError("Category cannot be empty")
    if "price" in changes:
        changes["price"] = parse_price(changes["price"])
        if changes["price"] is None:
            raise ValidationError("Price must be a valid positive number")

    changes["updated_at"] = utcnow()
    product = db.products.replace_at(index, db.products[index].model_copy(update=changes))
    return {"success": True, "data": product.to_json(), "message": "Product updated successfully"}


@app.delete("/api/products/{product_id}")
async def delete_product(product_id: str, db: Database = Depends(get_db)):
    index = db.products.find_index_by_id(parse_id(product_id, "product"))
    if index is None:
        raise NotFoundError("Product not found")
    product = db.products.remove_at(index)
    return {"success": True, "message": "Product deleted successfully", "data": {"id": product.id, "name": product.name}}


if __name__ == "__main__":
    import uvicorn

    logger.info("AI Backend API server started")
    logger.info("Server running on http://localhost:%s", settings.port)
    logger.info("Health check: http://localhost:%s/health", settings.port)
    logger.info("API documentation: http://localhost:%s%s", settings.port, app.docs_url)
    logger.info("Environment: %s", settings.environment)
    uvicorn.run(app, host=settings.host, port=settings.port)
