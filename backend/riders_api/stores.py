"""
ORM-backed RiderStore / OrderStore for the engine.

Rider compare-and-set is a single conditional UPDATE (filter on id + status,
check the row count), so two requests racing for one rider cannot both win.
Order writes lock the row with select_for_update inside a transaction.
Sets (declined_by, service_areas) become JSON lists here and nowhere else.
"""

from typing import Any, List, Mapping, Optional

from django.db import transaction
from django.utils import timezone

from dispatch.exceptions import NotFoundError
from orders.models import Order, StatusHistoryEntry
from orders.store import UPDATABLE_FIELDS, check_expected, check_fields
from riders.models import Rider, RiderStatus

from .models import DeliveryOrder, OrderStatusHistory, RiderRecord


class DjangoRiderStore:
    def get_by_id(self, rider_id: str) -> Optional[Rider]:
        record = RiderRecord.objects.filter(pk=rider_id).first()
        return record.to_domain() if record else None

    def get_by_email(self, email: str) -> Optional[Rider]:
        if not email:
            return None
        record = RiderRecord.objects.filter(email__iexact=email).first()
        return record.to_domain() if record else None

    def get_all(self) -> List[Rider]:
        return [record.to_domain() for record in RiderRecord.objects.all()]

    def update_status(
        self,
        rider_id: str,
        status: RiderStatus,
        *,
        expected: Optional[RiderStatus] = None,
    ) -> bool:
        rows = RiderRecord.objects.filter(pk=rider_id)
        if expected is not None:
            rows = rows.filter(status=RiderStatus(expected).value)

        if rows.update(status=RiderStatus(status).value):
            return True

        if not RiderRecord.objects.filter(pk=rider_id).exists():
            raise NotFoundError(f"Rider {rider_id} not found")
        return False

    def update_location(self, rider_id: str, lat: float, lon: float) -> Rider:
        updated = RiderRecord.objects.filter(pk=rider_id).update(
            current_lat=lat,
            current_lon=lon,
            location_updated_at=timezone.now(),
        )
        if not updated:
            raise NotFoundError(f"Rider {rider_id} not found")
        return self.get_by_id(rider_id)


class DjangoOrderStore:
    def get_by_id(self, order_id: str) -> Optional[Order]:
        record = DeliveryOrder.objects.filter(pk=order_id).prefetch_related('status_history').first()
        return record.to_domain() if record else None

    def update(
        self,
        order_id: str,
        fields: Mapping[str, Any],
        *,
        history: Optional[StatusHistoryEntry] = None,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Order:
        check_fields(fields)

        with transaction.atomic():
            record = DeliveryOrder.objects.select_for_update().filter(pk=order_id).first()
            if record is None:
                raise NotFoundError(f"Order {order_id} not found")
            check_expected(order_id, {name: getattr(record, name) for name in UPDATABLE_FIELDS}, expected)

            for name, value in fields.items():
                if name == "declined_by":
                    value = sorted(value)
                setattr(record, name, value)
            record.save()

            if history is not None:
                OrderStatusHistory.objects.create(
                    order=record,
                    status=history.status,
                    note=history.note or "",
                    created_at=history.timestamp,
                )

        return self.get_by_id(order_id)
