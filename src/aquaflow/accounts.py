"""Customer and vendor accounts: registration, login, profile and removal."""

from typing import Any

from werkzeug.security import check_password_hash, generate_password_hash

from .areas import AreaRegistry
from .config import Settings
from .entity_store import EntityStore
from .errors import (
    InvalidCredentialsError,
    NotFoundError,
    UserIdTakenError,
    ValidationError,
)
from .inventory import InventoryLedger
from .logger import setup_logger
from .models import (
    CUSTOMER,
    USER_TYPES,
    VENDOR,
    Address,
    InventoryItem,
    Invoice,
    Order,
    ServiceArea,
    Session,
    User,
)

logger = setup_logger(__name__)

ADDRESS_KEYS = ("street", "city", "state", "zip_code")


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, stored: str | None) -> bool:
    if not stored:
        return False
    return check_password_hash(stored, password)


def _required(field: str, value: str | None) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(field, "is required")
    return cleaned


class Accounts:
    """Creates, authenticates and removes users.

    A vendor comes with its service area (and, optionally, a starter
    catalog); a customer comes with a default Home address.
    """

    def __init__(
        self,
        store: EntityStore,
        areas: AreaRegistry,
        ledger: InventoryLedger,
        settings: Settings | None = None,
    ):
        self.store = store
        self.areas = areas
        self.ledger = ledger
        self.seed_catalog = settings.seed_default_catalog if settings else True

    def _check_user_id(self, user_id: str | None) -> str:
        cleaned = _required("user_id", user_id)
        if self.store.list(User, user_id=cleaned):
            raise UserIdTakenError(cleaned)
        return cleaned

    def register_customer(
        self,
        user_id: str,
        password: str,
        name: str,
        phone: str | None,
        area_id: str,
        address: dict[str, Any] | None = None,
    ) -> Session:
        """
        Register a customer together with a default Home address.

        Raises:
            UserIdTakenError: If user_id is already registered.
            ValidationError: On a blank field or an unknown area.
        """
        user_id = self._check_user_id(user_id)
        _required("password", password)
        name = _required("name", name)
        self.areas.require_area(area_id)

        address = address or {}
        unknown = set(address) - set(ADDRESS_KEYS)
        if unknown:
            raise ValidationError(sorted(unknown)[0], "not an address field")

        with self.store.transaction():
            user = User.create(
                user_id=user_id,
                name=name,
                type=CUSTOMER,
                phone=phone,
                area_id=area_id,
                password_hash=hash_password(password),
            )
            self.store.create(user)
            self.store.create(
                Address.create(
                    user_id=user.id,
                    area_id=area_id,
                    label="Home",
                    is_default=True,
                    **{k: address.get(k) or "" for k in ADDRESS_KEYS},
                )
            )
        logger.info("Registered customer %s", user_id)
        return Session.for_user(user)

    def register_vendor(
        self,
        user_id: str,
        password: str,
        name: str,
        phone: str | None,
        area_name: str,
    ) -> Session:
        """
        Register a vendor and the service area it will serve.

        Both the user ID and the area name are checked before anything is
        written, so a collision leaves no half-registered vendor behind.

        Raises:
            UserIdTakenError: If user_id is already registered.
            AreaNameTakenError: If another vendor serves an area of that name.
            ValidationError: On a blank field.
        """
        user_id = self._check_user_id(user_id)
        _required("password", password)
        name = _required("name", name)
        area_name = self.areas.check_area_name_available(area_name)

        with self.store.transaction():
            user = User.create(
                user_id=user_id,
                name=name,
                type=VENDOR,
                phone=phone,
                service_area=area_name,
                password_hash=hash_password(password),
            )
            self.store.create(user)
            self.areas.create_area(area_name, user)
            if self.seed_catalog:
                self.ledger.seed_default_catalog(user.id)
        logger.info("Registered vendor %s serving %s", user_id, area_name)
        return Session.for_user(user)

    def login(self, user_id: str, password: str, user_type: str) -> Session:
        """
        Verify credentials for an account of the given type.

        Raises:
            InvalidCredentialsError: If the user is unknown, the password is
                wrong, or the account is of the other type.
        """
        if user_type not in USER_TYPES:
            raise ValidationError("user_type", f"must be one of {', '.join(USER_TYPES)}")
        user = self.find_by_login(user_id)
        if user is None or user.type != user_type or not verify_password(password, user.password_hash):
            logger.info("Failed %s login for %s", user_type, user_id)
            raise InvalidCredentialsError(user_id)
        return Session.for_user(user)

    def find_by_login(self, user_id: str | None) -> User | None:
        found = self.store.list(User, user_id=(user_id or "").strip())
        return found[0] if found else None

    def get_by_login(self, user_id: str) -> User:
        user = self.find_by_login(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def get_user(self, id: str) -> User:
        user = self.store.get(User, id)
        if user is None:
            raise NotFoundError("User", id)
        return user

    def session_for(self, id: str) -> Session:
        return Session.for_user(self.get_user(id))

    def update_profile(
        self, session: Session, name: str | None = None, phone: str | None = None
    ) -> User:
        """Change name or phone; a vendor's area shows the new name right away."""
        changes: dict[str, Any] = {}
        if name is not None:
            changes["name"] = _required("name", name)
        if phone is not None:
            changes["phone"] = phone.strip()
        if not changes:
            return self.get_user(session.user_id)

        with self.store.transaction():
            user = self.store.update(User, session.user_id, changes)
            if user.is_vendor and "name" in changes:
                self.areas.sync_vendor_name(user.id, user.name)
        return user

    def _delete_order(self, order: Order) -> None:
        for invoice in self.store.list(Invoice, order_id=order.id):
            self.store.delete(Invoice, invoice.id)
        self.store.delete(Order, order.id)

    def delete_account(self, session: Session) -> None:
        """
        Remove a user and everything that belongs to them.

        A vendor takes its area, inventory, orders and their invoices along.
        A customer takes its addresses and orders along.
        """
        with self.store.transaction():
            user = self.get_user(session.user_id)
            if user.is_vendor:
                orders = self.store.list(Order, vendor_id=user.id)
                for order in orders:
                    self._delete_order(order)
                for item in self.store.list(InventoryItem, vendor_id=user.id):
                    self.store.delete(InventoryItem, item.id)
                for area in self.store.list(ServiceArea, vendor_id=user.id):
                    self.store.delete(ServiceArea, area.id)
            else:
                orders = self.store.list(Order, customer_id=user.id)
                for order in orders:
                    self._delete_order(order)
                for address in self.store.list(Address, user_id=user.id):
                    self.store.delete(Address, address.id)
            self.store.delete(User, user.id)
        logger.info("Deleted %s %s and %d orders", user.type, user.user_id, len(orders))
