"""Service areas and the customer address book."""

from typing import Any

from .entity_store import EntityStore
from .errors import (
    AreaNameTakenError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from .logger import setup_logger
from .models import Address, ServiceArea, Session, User

logger = setup_logger(__name__)

ADDRESS_FIELDS = frozenset({"label", "street", "city", "state", "zip_code", "area_id", "is_default"})


class AreaRegistry:
    """Binds vendors to areas and customer addresses to areas.

    A vendor owns at most one area, area names are unique ignoring case, and
    every address resolves delivery through exactly one existing area.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    # --- Areas ---

    def list_areas(self) -> list[ServiceArea]:
        """All areas, newest first."""
        areas = self.store.list(ServiceArea)
        areas.sort(key=lambda a: a.created_at, reverse=True)
        return areas

    def get_area(self, area_id: str) -> ServiceArea:
        area = self.store.get(ServiceArea, area_id)
        if area is None:
            raise NotFoundError("Service area", area_id)
        return area

    def find_area_by_name(self, name: str) -> ServiceArea | None:
        wanted = name.strip().lower()
        for area in self.store.list(ServiceArea):
            if area.name.lower() == wanted:
                return area
        return None

    def check_area_name_available(self, name: str) -> str:
        """Return the cleaned name, or raise if it cannot be registered."""
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("area_name", "please enter the area you will serve")
        if self.find_area_by_name(cleaned) is not None:
            raise AreaNameTakenError(cleaned)
        return cleaned

    def create_area(self, name: str, vendor: User) -> ServiceArea:
        """
        Create the service area served by a vendor.

        Raises:
            ValidationError: If the name is blank or the owner isn't a vendor.
            AreaNameTakenError: If the name matches an existing area ignoring case.
            ConflictError: If the vendor already owns an area.
        """
        if not vendor.is_vendor:
            raise ValidationError("vendor", "only vendors can own a service area")
        cleaned = self.check_area_name_available(name)
        if self.area_for_vendor(vendor.id) is not None:
            raise ConflictError(f"Vendor {vendor.user_id} already serves an area")

        area = ServiceArea.create(name=cleaned, vendor_id=vendor.id, vendor_name=vendor.name)
        self.store.create(area)
        logger.info("Created service area %s for vendor %s", area.name, vendor.user_id)
        return area

    def area_for_vendor(self, vendor_id: str) -> ServiceArea | None:
        found = self.store.list(ServiceArea, vendor_id=vendor_id)
        return found[0] if found else None

    def require_area(self, area_id: str | None) -> ServiceArea:
        """
        Validate an area reference given by a customer.

        Raises:
            ValidationError: If area_id is empty or doesn't name an existing area.
        """
        if not area_id:
            raise ValidationError("area_id", "please select a service area")
        area = self.store.get(ServiceArea, area_id)
        if area is None:
            raise ValidationError("area_id", f"unknown service area {area_id}")
        return area

    def resolve_vendor_for_area(self, area_id: str) -> str:
        """Return the id of the vendor delivering to an area."""
        return self.get_area(area_id).vendor_id

    def sync_vendor_name(self, vendor_id: str, vendor_name: str) -> None:
        """Refresh the owner name shown on the vendor's area."""
        area = self.area_for_vendor(vendor_id)
        if area is not None and area.vendor_name != vendor_name:
            self.store.update(ServiceArea, area.id, {"vendor_name": vendor_name})

    # --- Address book ---

    def list_addresses(self, customer_id: str) -> list[Address]:
        """A customer's addresses, default first, then oldest first."""
        found = self.store.list(Address, user_id=customer_id)
        found.sort(key=lambda a: a.created_at)
        found.sort(key=lambda a: not a.is_default)
        return found

    def default_address(self, customer_id: str) -> Address | None:
        for address in self.store.list(Address, user_id=customer_id):
            if address.is_default:
                return address
        return None

    def get_address(self, session: Session, address_id: str) -> Address:
        address = self.store.get(Address, address_id)
        if address is None:
            raise NotFoundError("Address", address_id)
        if address.user_id != session.user_id:
            raise ForbiddenError("Address belongs to another customer")
        return address

    def _clear_defaults(self, customer_id: str, keep_id: str | None = None) -> None:
        for other in self.store.list(Address, user_id=customer_id, is_default=True):
            if other.id != keep_id:
                self.store.update(Address, other.id, {"is_default": False})

    def add_address(
        self,
        session: Session,
        area_id: str,
        label: str = "Home",
        street: str = "",
        city: str = "",
        state: str = "",
        zip_code: str = "",
        is_default: bool = False,
    ) -> Address:
        """
        Add an address to the acting customer's address book.

        The first address is always the default; asking for is_default moves
        the default to the new address.
        """
        if not session.is_customer:
            raise ForbiddenError("Only customers keep delivery addresses")
        self.require_area(area_id)

        with self.store.transaction():
            first = not self.store.list(Address, user_id=session.user_id)
            make_default = first or is_default
            if make_default:
                self._clear_defaults(session.user_id)
            address = Address.create(
                user_id=session.user_id,
                area_id=area_id,
                label=label or "Home",
                street=street,
                city=city,
                state=state,
                zip_code=zip_code,
                is_default=make_default,
            )
            self.store.create(address)
        logger.info("Added address %s for %s", address.id, session.login)
        return address

    def update_address(self, session: Session, address_id: str, **changes: Any) -> Address:
        """Edit an address; a new area is validated like on creation."""
        unknown = set(changes) - ADDRESS_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "field cannot be edited")
        address = self.get_address(session, address_id)
        if "area_id" in changes:
            self.require_area(changes["area_id"])

        with self.store.transaction():
            if changes.get("is_default"):
                self._clear_defaults(session.user_id, keep_id=address.id)
            elif changes.get("is_default") is False and address.is_default:
                # the default moves only by picking another address
                changes = {k: v for k, v in changes.items() if k != "is_default"}
            return self.store.update(Address, address.id, changes)

    def set_default_address(self, session: Session, address_id: str) -> Address:
        address = self.get_address(session, address_id)
        with self.store.transaction():
            self._clear_defaults(session.user_id, keep_id=address.id)
            return self.store.update(Address, address.id, {"is_default": True})

    def delete_address(self, session: Session, address_id: str) -> None:
        """Remove an address; the oldest remaining one inherits the default."""
        address = self.get_address(session, address_id)
        with self.store.transaction():
            self.store.delete(Address, address.id)
            if address.is_default:
                remaining = self.list_addresses(session.user_id)
                if remaining:
                    self.store.update(Address, remaining[0].id, {"is_default": True})
