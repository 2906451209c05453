from django.db import models
from django.utils import timezone

from orders.models import PENDING_RIDER_ASSIGNMENT, DistanceCategory, Order, StatusHistoryEntry
from riders.models import Capacity, Location, Rider, RiderStatus


class RiderRecord(models.Model):
    """
    Persistent rider profile + live position.
    email links the record to the authenticated user making API calls.
    """
    class Status(models.TextChoices):
        AVAILABLE = RiderStatus.AVAILABLE.value, "Available"
        BUSY = RiderStatus.BUSY.value, "Busy"
        OFFLINE = RiderStatus.OFFLINE.value, "Offline"

    id = models.CharField(primary_key=True, max_length=64)
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True, blank=True, null=True)
    phone = models.CharField(max_length=32, blank=True)

    # Compare-and-set target for assignment, hence indexed
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.AVAILABLE, db_index=True)

    # Null until the rider first reports a position
    current_lat = models.FloatField(blank=True, null=True)
    current_lon = models.FloatField(blank=True, null=True)
    location_updated_at = models.DateTimeField(blank=True, null=True)

    # Region identifiers, stored as a JSON list
    service_areas = models.JSONField(default=list, blank=True)
    rating = models.FloatField(default=0.0)
    completed_deliveries = models.PositiveIntegerField(default=0)
    max_weight_kg = models.FloatField(default=0.0)
    # [length, width, height] in cm
    max_dimensions = models.JSONField(blank=True, null=True)

    def __str__(self):
        return f"{self.name} ({self.get_status_display()})"

    def to_domain(self) -> Rider:
        location = None
        if self.current_lat is not None and self.current_lon is not None:
            location = Location(lat=self.current_lat, lon=self.current_lon, updated_at=self.location_updated_at)
        return Rider(
            id=self.id,
            name=self.name,
            status=RiderStatus(self.status),
            location=location,
            email=self.email,
            phone=self.phone or None,
            service_areas=frozenset(self.service_areas or ()),
            rating=self.rating,
            completed_deliveries=self.completed_deliveries,
            capacity=Capacity(
                max_weight_kg=self.max_weight_kg,
                max_dimensions_cm=tuple(self.max_dimensions) if self.max_dimensions else None,
            ),
        )


class DeliveryOrder(models.Model):
    """
    The delivery side of an order: where to collect, who carries it, how far along it is.
    """
    class Category(models.TextChoices):
        LOCAL = DistanceCategory.LOCAL.value, "Local"
        INTERCITY = DistanceCategory.INTERCITY.value, "Intercity"
        LONG_DISTANCE = DistanceCategory.LONG_DISTANCE.value, "Long distance"

    id = models.CharField(primary_key=True, max_length=64)
    pickup_lat = models.FloatField(blank=True, null=True)
    pickup_lon = models.FloatField(blank=True, null=True)
    distance_category = models.CharField(max_length=20, choices=Category.choices, default=Category.LOCAL)
    parcel_weight_kg = models.FloatField(blank=True, null=True)

    assigned_rider = models.ForeignKey(
        RiderRecord, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders'
    )
    # Free text: engine statuses ("Rider Assigned") and rider-reported ones ("picked_up")
    status = models.CharField(max_length=64, default=PENDING_RIDER_ASSIGNMENT)
    # Rider ids, stored as a JSON list
    declined_by = models.JSONField(default=list, blank=True)
    needs_manual_assignment = models.BooleanField(default=False)

    expected_pickup_time = models.DateTimeField(blank=True, null=True)
    expected_delivery_time = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Order {self.id} - {self.status}"

    def to_domain(self) -> Order:
        pickup = None
        if self.pickup_lat is not None and self.pickup_lon is not None:
            pickup = (self.pickup_lat, self.pickup_lon)
        return Order(
            id=self.id,
            pickup_location=pickup,
            distance_category=DistanceCategory(self.distance_category),
            parcel_weight_kg=self.parcel_weight_kg,
            assigned_rider_id=self.assigned_rider_id,
            status=self.status,
            status_history=[
                StatusHistoryEntry(status=h.status, timestamp=h.created_at, note=h.note)
                for h in self.status_history.all()
            ],
            declined_by=set(self.declined_by or ()),
            needs_manual_assignment=self.needs_manual_assignment,
            expected_pickup_time=self.expected_pickup_time,
            expected_delivery_time=self.expected_delivery_time,
            created_at=self.created_at,
        )


class OrderStatusHistory(models.Model):
    """
    Append-only audit trail of order status changes.
    """
    order = models.ForeignKey(DeliveryOrder, on_delete=models.CASCADE, related_name='status_history')
    status = models.CharField(max_length=64)
    note = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.order_id}: {self.status}"
