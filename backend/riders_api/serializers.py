from rest_framework import serializers


def _location(location):
    if location is None:
        return None
    return {
        "lat": location.lat,
        "lon": location.lon,
        "updated_at": location.updated_at.isoformat() if location.updated_at else None,
    }


class RiderSnapshotSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    email = serializers.CharField(allow_null=True)
    status = serializers.CharField(source='status.value')
    rating = serializers.FloatField()
    completed_deliveries = serializers.IntegerField()
    location = serializers.SerializerMethodField()

    def get_location(self, rider):
        return _location(rider.location)


class NearbyRiderSerializer(serializers.Serializer):
    id = serializers.CharField(source='rider.id')
    name = serializers.CharField(source='rider.name')
    status = serializers.CharField(source='rider.status.value')
    rating = serializers.FloatField(source='rider.rating')
    completed_deliveries = serializers.IntegerField(source='rider.completed_deliveries')
    distance_km = serializers.FloatField()
    location = serializers.SerializerMethodField()

    def get_location(self, candidate):
        return _location(candidate.rider.location)


class StatusHistorySerializer(serializers.Serializer):
    status = serializers.CharField()
    timestamp = serializers.DateTimeField()
    note = serializers.CharField(allow_blank=True)


class OrderSnapshotSerializer(serializers.Serializer):
    id = serializers.CharField()
    status = serializers.CharField()
    distance_category = serializers.CharField(source='distance_category.value')
    assigned_rider_id = serializers.CharField(allow_null=True)
    needs_manual_assignment = serializers.BooleanField()
    declined_by = serializers.SerializerMethodField()
    expected_pickup_time = serializers.DateTimeField(allow_null=True)
    expected_delivery_time = serializers.DateTimeField(allow_null=True)
    status_history = StatusHistorySerializer(many=True)

    def get_declined_by(self, order):
        return sorted(order.declined_by)


class AssignmentResultSerializer(serializers.Serializer):
    order_id = serializers.CharField()
    assigned = serializers.BooleanField()
    rider = RiderSnapshotSerializer(allow_null=True)
    distance_km = serializers.FloatField(allow_null=True)
    strategy = serializers.CharField(allow_null=True)
    needs_manual_assignment = serializers.BooleanField()
    order = OrderSnapshotSerializer(allow_null=True)
