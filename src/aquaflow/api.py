"""FastAPI REST API for the aquaflow marketplace."""

from dataclasses import asdict
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .errors import (
    AquaflowError,
    ConflictError,
    ForbiddenError,
    InvalidSchemaVersionError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from .logger import setup_logger
from .marketplace import Marketplace
from .models import (
    Address,
    InventoryItem,
    Invoice,
    MonthlyReport,
    Order,
    ServiceArea,
    Session,
    User,
)
from .orders import available_order_months

logger = setup_logger(__name__)


# --- Pydantic Schemas ---


class SessionSchema(BaseModel):
    user_id: str
    login: str
    name: str
    type: str


class UserSchema(BaseModel):
    id: str
    user_id: str
    name: str
    type: str
    phone: Optional[str] = None
    area_id: Optional[str] = None
    service_area: Optional[str] = None
    created_at: str
    updated_at: str


class AddressFields(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


class CustomerRegisterRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    area_id: str = Field(..., description="Service area picked from /api/areas")
    address: AddressFields = Field(default_factory=AddressFields)


class VendorRegisterRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    area_name: str = Field(..., description="Name of the area the vendor will serve")


class LoginRequest(BaseModel):
    user_id: str
    password: str
    user_type: str = Field(..., description="'customer' or 'vendor'")


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None


class AreaSchema(BaseModel):
    id: str
    name: str
    vendor_id: str
    vendor_name: str
    created_at: str


class AreaListResponse(BaseModel):
    areas: list[AreaSchema]
    count: int


class AddressSchema(BaseModel):
    id: str
    user_id: str
    label: str
    street: str
    city: str
    state: str
    zip_code: str
    area_id: str
    is_default: bool
    created_at: str


class AddressCreateRequest(AddressFields):
    area_id: str
    label: str = "Home"
    is_default: bool = False


class AddressUpdateRequest(BaseModel):
    label: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    area_id: Optional[str] = None
    is_default: Optional[bool] = None


class InventoryItemSchema(BaseModel):
    id: str
    vendor_id: str
    name: str
    price: str  # decimal string
    stock: int
    description: str = ""
    stock_level: str
    created_at: str
    updated_at: str


class InventoryListResponse(BaseModel):
    items: list[InventoryItemSchema]
    count: int


class InventoryItemRequest(BaseModel):
    name: str
    price: Decimal
    stock: int
    description: str = ""


class OrderItemSchema(BaseModel):
    id: str
    name: str
    price: str
    quantity: int


class OrderMessageSchema(BaseModel):
    id: str
    order_id: str
    sender: str
    sender_name: str
    message: str
    timestamp: str


class OrderSchema(BaseModel):
    id: str
    customer_id: str
    customer_name: str
    customer_phone: str
    customer_user_id: str
    address: AddressSchema
    items: list[OrderItemSchema]
    total: str
    status: str
    order_date: str
    delivery_date: str
    preferred_time: str
    vendor_id: str
    vendor_name: str
    area_id: str
    invoice_id: Optional[str] = None
    messages: list[OrderMessageSchema]


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    count: int
    months: list[str] = Field(default_factory=list, description="YYYY-MM with orders, newest first")


class CartLineRequest(BaseModel):
    item_id: str
    quantity: int = Field(..., ge=1)


class OrderCreateRequest(BaseModel):
    address_id: str
    items: list[CartLineRequest]
    delivery_date: str = Field(..., description="YYYY-MM-DD")
    preferred_time: str


class StatusUpdateRequest(BaseModel):
    status: str


class MessageCreateRequest(BaseModel):
    message: str


class InvoiceSchema(BaseModel):
    id: str
    order_id: str
    amount: str
    generated_date: str
    due_date: str
    status: str


class InvoiceListResponse(BaseModel):
    invoices: list[InvoiceSchema]
    count: int


class CustomerTotalsSchema(BaseModel):
    name: str
    orders: int
    amount: str


class MonthlyReportSchema(BaseModel):
    year: int
    month: int
    month_name: str
    total_orders: int
    total_revenue: str
    per_customer: dict[str, CustomerTotalsSchema]


class YearlyReportResponse(BaseModel):
    year: int
    months: list[MonthlyReportSchema]
    total_orders: int
    total_revenue: str


class ErrorResponse(BaseModel):
    detail: str
    error_type: str


# --- Helper Functions ---


@lru_cache
def get_marketplace() -> Marketplace:
    """Get the process-wide Marketplace."""
    return Marketplace.from_settings()


def current_session(x_user_id: Optional[str] = Header(default=None)) -> Session:
    """Resolve the acting user from the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    try:
        return get_marketplace().accounts.session_for(x_user_id)
    except NotFoundError:
        raise HTTPException(status_code=401, detail="Unknown user")


def require_vendor(session: Session = Depends(current_session)) -> Session:
    if not session.is_vendor:
        raise ForbiddenError("Vendor account required")
    return session


def require_customer(session: Session = Depends(current_session)) -> Session:
    if not session.is_customer:
        raise ForbiddenError("Customer account required")
    return session


def user_to_schema(user: User) -> UserSchema:
    """Convert a User to its public schema; the password hash never leaves."""
    data = user.to_dict()
    data.pop("password_hash")
    return UserSchema(**data)


def area_to_schema(area: ServiceArea) -> AreaSchema:
    return AreaSchema(**area.to_dict())


def address_to_schema(address: Address) -> AddressSchema:
    return AddressSchema(**address.to_dict())


def item_to_schema(item: InventoryItem) -> InventoryItemSchema:
    return InventoryItemSchema(**item.to_dict(), stock_level=item.stock_level)


def order_to_schema(order: Order) -> OrderSchema:
    return OrderSchema(**order.to_dict())


def invoice_to_schema(invoice: Invoice) -> InvoiceSchema:
    return InvoiceSchema(**invoice.to_dict())


def report_to_schema(report: MonthlyReport) -> MonthlyReportSchema:
    return MonthlyReportSchema(**report.to_dict())


def _months(pairs: list[tuple[int, int]]) -> list[str]:
    return [f"{y:04d}-{m:02d}" for y, m in pairs]


# --- FastAPI App ---


app = FastAPI(
    title="aquaflow API",
    description="REST API for the water-can delivery marketplace",
    version=__version__,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes; subclasses inherit their base's code
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    ForbiddenError: 403,
    PartialFailureError: 207,
    InvalidSchemaVersionError: 500,
}


def status_code_for(exc: AquaflowError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


@app.exception_handler(AquaflowError)
async def aquaflow_error_handler(request: Request, exc: AquaflowError) -> JSONResponse:
    """Map AquaflowError subclasses to appropriate HTTP responses."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """
    Health check endpoint.

    Returns basic service status and the active storage backend.
    """
    market = get_marketplace()
    try:
        areas = market.areas.list_areas()
        return {
            "status": "ok",
            "backend": market.settings.backend,
            "area_count": len(areas),
        }
    except AquaflowError as e:
        return {
            "status": "error",
            "detail": str(e),
        }


# --- Account Endpoints ---


@app.post("/api/auth/register/customer", response_model=SessionSchema, status_code=201)
def register_customer(request: CustomerRegisterRequest):
    """Register a customer with a default Home address in the chosen area."""
    session = get_marketplace().accounts.register_customer(
        user_id=request.user_id,
        password=request.password,
        name=request.name,
        phone=request.phone,
        area_id=request.area_id,
        address=request.address.model_dump(),
    )
    return SessionSchema(**asdict(session))


@app.post("/api/auth/register/vendor", response_model=SessionSchema, status_code=201)
def register_vendor(request: VendorRegisterRequest):
    """Register a vendor along with the service area it will serve."""
    session = get_marketplace().accounts.register_vendor(
        user_id=request.user_id,
        password=request.password,
        name=request.name,
        phone=request.phone,
        area_name=request.area_name,
    )
    return SessionSchema(**asdict(session))


@app.post("/api/auth/login", response_model=SessionSchema)
def login(request: LoginRequest):
    """Check credentials; the returned user_id goes in the X-User-Id header."""
    session = get_marketplace().accounts.login(
        request.user_id, request.password, request.user_type
    )
    return SessionSchema(**asdict(session))


@app.get("/api/me", response_model=UserSchema)
def get_profile(session: Session = Depends(current_session)):
    return user_to_schema(get_marketplace().accounts.get_user(session.user_id))


@app.patch("/api/me", response_model=UserSchema)
def update_profile(request: ProfileUpdateRequest, session: Session = Depends(current_session)):
    """Update name or phone."""
    user = get_marketplace().accounts.update_profile(
        session, name=request.name, phone=request.phone
    )
    return user_to_schema(user)


@app.delete("/api/me", status_code=204)
def delete_account(session: Session = Depends(current_session)):
    """Delete the account and everything it owns."""
    get_marketplace().accounts.delete_account(session)


# --- Area Endpoints ---


@app.get("/api/areas", response_model=AreaListResponse)
def list_areas():
    """List all service areas (no login needed, used at registration)."""
    areas = get_marketplace().areas.list_areas()
    return AreaListResponse(areas=[area_to_schema(a) for a in areas], count=len(areas))


@app.get("/api/areas/{area_id}/inventory", response_model=InventoryListResponse)
def area_catalog(area_id: str):
    """The catalog offered to customers in an area."""
    market = get_marketplace()
    items = market.inventory.list_for_area(market.areas, area_id)
    return InventoryListResponse(items=[item_to_schema(i) for i in items], count=len(items))


# --- Address Endpoints ---


@app.get("/api/addresses", response_model=list[AddressSchema])
def list_addresses(session: Session = Depends(require_customer)):
    """The customer's addresses, default first."""
    addresses = get_marketplace().areas.list_addresses(session.user_id)
    return [address_to_schema(a) for a in addresses]


@app.post("/api/addresses", response_model=AddressSchema, status_code=201)
def add_address(request: AddressCreateRequest, session: Session = Depends(require_customer)):
    address = get_marketplace().areas.add_address(session, **request.model_dump())
    return address_to_schema(address)


@app.patch("/api/addresses/{address_id}", response_model=AddressSchema)
def update_address(
    address_id: str,
    request: AddressUpdateRequest,
    session: Session = Depends(require_customer),
):
    changes = request.model_dump(exclude_none=True)
    address = get_marketplace().areas.update_address(session, address_id, **changes)
    return address_to_schema(address)


@app.post("/api/addresses/{address_id}/default", response_model=AddressSchema)
def set_default_address(address_id: str, session: Session = Depends(require_customer)):
    address = get_marketplace().areas.set_default_address(session, address_id)
    return address_to_schema(address)


@app.delete("/api/addresses/{address_id}", status_code=204)
def delete_address(address_id: str, session: Session = Depends(require_customer)):
    get_marketplace().areas.delete_address(session, address_id)


# --- Inventory Endpoints ---


@app.get("/api/inventory", response_model=InventoryListResponse)
def list_inventory(session: Session = Depends(require_vendor)):
    """The vendor's own items, newest first."""
    items = get_marketplace().inventory.list(session.user_id)
    return InventoryListResponse(items=[item_to_schema(i) for i in items], count=len(items))


@app.get("/api/inventory/low-stock", response_model=InventoryListResponse)
def low_stock(session: Session = Depends(require_vendor)):
    items = get_marketplace().inventory.low_stock(session.user_id)
    return InventoryListResponse(items=[item_to_schema(i) for i in items], count=len(items))


@app.post("/api/inventory", response_model=InventoryItemSchema, status_code=201)
def add_inventory_item(request: InventoryItemRequest, session: Session = Depends(require_vendor)):
    item = get_marketplace().inventory.add_item(
        session, request.name, request.price, request.stock, request.description
    )
    return item_to_schema(item)


@app.put("/api/inventory/{item_id}", response_model=InventoryItemSchema)
def upsert_inventory_item(
    item_id: str,
    request: InventoryItemRequest,
    session: Session = Depends(require_vendor),
):
    """Create or replace an item under the given id."""
    market = get_marketplace()
    existing = market.store.get(InventoryItem, item_id)
    item = InventoryItem(
        id=item_id,
        vendor_id=session.user_id,
        name=request.name,
        price=request.price,
        stock=request.stock,
        description=request.description,
    )
    if existing is not None:
        item.created_at = existing.created_at
    return item_to_schema(market.inventory.upsert(session, item))


@app.delete("/api/inventory/{item_id}", status_code=204)
def delete_inventory_item(item_id: str, session: Session = Depends(require_vendor)):
    get_marketplace().inventory.delete(session, item_id)


# --- Order Endpoints ---


@app.post("/api/orders", response_model=OrderSchema, status_code=201)
def place_order(request: OrderCreateRequest, session: Session = Depends(require_customer)):
    """
    Place an order from cart lines.

    Prices are taken from the vendor's current catalog, not from the request.
    """
    market = get_marketplace()
    cart = market.orders.build_cart(
        session, request.address_id, [(line.item_id, line.quantity) for line in request.items]
    )
    order = market.place_order(
        session, request.address_id, cart, request.delivery_date, request.preferred_time
    )
    return order_to_schema(order)


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(
    status: Optional[str] = Query(default=None, description="Vendor only: filter by status"),
    year: Optional[int] = Query(default=None, description="Customer only: year placed"),
    month: Optional[int] = Query(default=None, ge=1, le=12, description="Customer only: month placed"),
    session: Session = Depends(current_session),
):
    """
    List the caller's orders, newest first.

    Vendors can filter by status; customers by the month the order was placed.
    """
    market = get_marketplace()
    if session.is_vendor:
        orders = market.orders.orders_for_vendor(session.user_id, status=status)
        months = available_order_months(market.orders.orders_for_vendor(session.user_id))
    else:
        orders = market.orders.orders_for_customer(session.user_id, year=year, month=month)
        months = available_order_months(market.orders.orders_for_customer(session.user_id))
    return OrderListResponse(
        orders=[order_to_schema(o) for o in orders],
        count=len(orders),
        months=_months(months),
    )


@app.get("/api/orders/status-counts")
def order_status_counts(session: Session = Depends(require_vendor)):
    """Order counts per status for the vendor dashboard."""
    return get_marketplace().orders.status_counts(session.user_id)


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str, session: Session = Depends(current_session)):
    return order_to_schema(get_marketplace().orders.view_order(session, order_id))


@app.patch("/api/orders/{order_id}/status", response_model=OrderSchema)
def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    session: Session = Depends(require_vendor),
):
    order = get_marketplace().set_order_status(session, order_id, request.status)
    return order_to_schema(order)


@app.post("/api/orders/{order_id}/messages", response_model=OrderMessageSchema, status_code=201)
def post_message(
    order_id: str,
    request: MessageCreateRequest,
    session: Session = Depends(current_session),
):
    message = get_marketplace().append_message(session, order_id, request.message)
    return OrderMessageSchema(**message.to_dict())


# --- Invoice Endpoints ---


@app.post("/api/orders/{order_id}/invoice", response_model=InvoiceSchema, status_code=201)
def generate_invoice(order_id: str, session: Session = Depends(require_vendor)):
    invoice = get_marketplace().generate_invoice(session, order_id)
    return invoice_to_schema(invoice)


@app.get("/api/invoices", response_model=InvoiceListResponse)
def list_invoices(session: Session = Depends(require_vendor)):
    invoices = get_marketplace().invoices.invoices_for_vendor(session.user_id)
    return InvoiceListResponse(
        invoices=[invoice_to_schema(i) for i in invoices], count=len(invoices)
    )


@app.patch("/api/invoices/{invoice_id}", response_model=InvoiceSchema)
def update_invoice_status(
    invoice_id: str,
    request: StatusUpdateRequest,
    session: Session = Depends(require_vendor),
):
    invoice = get_marketplace().update_invoice_status(session, invoice_id, request.status)
    return invoice_to_schema(invoice)


# --- Report Endpoints ---


@app.get("/api/reports/monthly", response_model=MonthlyReportSchema)
def monthly_report(
    year: int = Query(...),
    month: int = Query(..., ge=1, le=12),
    session: Session = Depends(require_vendor),
):
    """Revenue from orders delivered in the given month."""
    return report_to_schema(get_marketplace().monthly_report(session.user_id, year, month))


@app.get("/api/reports/yearly", response_model=YearlyReportResponse)
def yearly_report(year: int = Query(...), session: Session = Depends(require_vendor)):
    """Month-by-month revenue, newest month first, skipping months without deliveries."""
    market = get_marketplace()
    reports = market.yearly_report(session.user_id, year)
    totals = market.reports.yearly_totals(reports)
    return YearlyReportResponse(
        year=year,
        months=[report_to_schema(r) for r in reports],
        total_orders=totals["total_orders"],
        total_revenue=str(totals["total_revenue"]),
    )


@app.get("/api/reports/months")
def report_months(session: Session = Depends(require_vendor)):
    """Months with deliveries, for the report picker."""
    return {"months": _months(get_marketplace().reports.available_report_months(session.user_id))}
