"""Monthly and yearly revenue reports over delivered orders."""

import calendar
from decimal import Decimal

from .entity_store import EntityStore
from .errors import ValidationError
from .logger import setup_logger
from .models import DELIVERED, CustomerTotals, MonthlyReport, Order
from .orders import parse_delivery_date

logger = setup_logger(__name__)


def _check_period(year: int, month: int | None = None) -> None:
    if year < 1:
        raise ValidationError("year", f"out of range: {year}")
    if month is not None and not 1 <= month <= 12:
        raise ValidationError("month", f"must be 1-12, got {month}")


class ReportBuilder:
    """Revenue views computed on demand; nothing here is persisted.

    Only delivered orders count, and they count in the month of their
    delivery date, not the month they were placed.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    def _delivered(self, vendor_id: str) -> list[tuple[tuple[int, int], Order]]:
        dated = []
        for order in self.store.list(Order, vendor_id=vendor_id, status=DELIVERED):
            try:
                day = parse_delivery_date(order.delivery_date)
            except ValidationError:
                logger.warning(
                    "Skipping order %s: unparseable delivery date %r",
                    order.id, order.delivery_date,
                )
                continue
            dated.append(((day.year, day.month), order))
        return dated

    def monthly_report(self, vendor_id: str, year: int, month: int) -> MonthlyReport:
        _check_period(year, month)
        report = MonthlyReport(year=year, month=month, month_name=calendar.month_name[month])
        for period, order in self._delivered(vendor_id):
            if period != (year, month):
                continue
            report.total_orders += 1
            report.total_revenue += order.total
            totals = report.per_customer.setdefault(
                order.customer_id, CustomerTotals(name=order.customer_name)
            )
            totals.orders += 1
            totals.amount += order.total
        return report

    def yearly_report(self, vendor_id: str, year: int) -> list[MonthlyReport]:
        """Monthly reports for every month of the year with deliveries, newest first."""
        _check_period(year)
        months = sorted(
            {m for (y, m), _ in self._delivered(vendor_id) if y == year}, reverse=True
        )
        return [self.monthly_report(vendor_id, year, m) for m in months]

    def yearly_totals(self, reports: list[MonthlyReport]) -> dict[str, object]:
        return {
            "total_orders": sum(r.total_orders for r in reports),
            "total_revenue": sum((r.total_revenue for r in reports), Decimal("0")),
        }

    def available_report_months(self, vendor_id: str) -> list[tuple[int, int]]:
        return sorted({period for period, _ in self._delivered(vendor_id)}, reverse=True)
