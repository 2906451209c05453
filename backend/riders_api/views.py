import logging

from rest_framework import viewsets, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response

from dispatch.exceptions import (
    CommitError,
    DispatchError,
    InvalidTransition,
    NotFoundError,
    RiderNotAssignedError,
    ValidationError,
)
from .models import DeliveryOrder, RiderRecord
from .serializers import AssignmentResultSerializer, NearbyRiderSerializer, OrderSnapshotSerializer, RiderSnapshotSerializer
from .services import get_assignment_engine, get_rider_query, get_status_machine
from .stores import DjangoRiderStore

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS = [
    (RiderNotAssignedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidTransition, status.HTTP_400_BAD_REQUEST),
    (CommitError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def error_response(error: DispatchError) -> Response:
    for error_type, http_status in ERROR_STATUS:
        if isinstance(error, error_type):
            break
    else:
        http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    if http_status >= 500:
        logger.error("Dispatch request failed: %s", error)
    return Response({"error": str(error)}, status=http_status)


def _flag(value, default=True) -> bool:
    if value is None:
        return default
    return str(value).lower() not in ("false", "0", "no")


class RiderViewSet(viewsets.GenericViewSet):
    """
    Rider-facing endpoints. The acting rider is the one whose e-mail matches
    the authenticated user.
    """
    queryset = RiderRecord.objects.all()
    permission_classes = [permissions.IsAuthenticated]

    def _current_rider(self, request):
        rider = DjangoRiderStore().get_by_email(request.user.email)
        if rider is None:
            raise NotFoundError("Rider profile not found")
        return rider

    @action(detail=False, methods=['get'])
    def nearby(self, request):
        """
        GET ?lat=&lon=&radius=&available_only=
        """
        params = request.query_params
        if params.get("lat") in (None, "") or params.get("lon") in (None, ""):
            return Response({"error": "lat and lon are required"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            riders = get_rider_query().find_nearby(
                (params.get("lat"), params.get("lon")),
                radius_km=params.get("radius"),
                available_only=_flag(params.get("available_only")),
            )
        except DispatchError as error:
            return error_response(error)

        return Response({
            "count": len(riders),
            "riders": NearbyRiderSerializer(riders, many=True).data,
        })

    @action(detail=False, methods=['post'], url_path='update-location')
    def update_location(self, request):
        try:
            rider = self._current_rider(request)
            rider = get_rider_query().update_location(rider.id, request.data.get("lat"), request.data.get("lon"))
        except DispatchError as error:
            return error_response(error)
        return Response(RiderSnapshotSerializer(rider).data)

    @action(detail=False, methods=['post'], url_path='update-status')
    def update_status(self, request):
        order_id = request.data.get("order_id")
        new_status = request.data.get("status")
        if not order_id or not new_status:
            return Response({"error": "order_id and status are required"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            order = get_status_machine().update_status_by_email(
                request.user.email, order_id, new_status, request.data.get("notes", "")
            )
        except DispatchError as error:
            return error_response(error)
        return Response(OrderSnapshotSerializer(order).data)

    @action(detail=False, methods=['post'], url_path='decline-order')
    def decline_order(self, request):
        """
        Body: {order_id, reason, reassign}. With reassign (default true) the
        order immediately goes through a fresh assignment attempt.
        """
        order_id = request.data.get("order_id")
        if not order_id:
            return Response({"error": "order_id is required"}, status=status.HTTP_400_BAD_REQUEST)
        reason = request.data.get("reason", "")

        try:
            rider = self._current_rider(request)
            engine = get_assignment_engine()
            if _flag(request.data.get("reassign")):
                order, result = engine.decline_and_reassign(order_id, rider.id, reason)
            else:
                order, result = engine.decline(order_id, rider.id, reason), None
        except DispatchError as error:
            return error_response(error)

        return Response({
            "order": OrderSnapshotSerializer(order).data,
            "reassignment": AssignmentResultSerializer(result).data if result else None,
        })


class DeliveryOrderViewSet(viewsets.GenericViewSet):
    queryset = DeliveryOrder.objects.all()
    permission_classes = [permissions.IsAuthenticated]

    @action(detail=True, methods=['post'], url_path='assign-rider')
    def assign_rider(self, request, pk=None):
        """
        Run the assignment ladder for this order. Optional body {lat, lon}
        overrides the stored pickup point.
        """
        pickup = None
        if request.data.get("lat") is not None and request.data.get("lon") is not None:
            pickup = (request.data.get("lat"), request.data.get("lon"))

        try:
            result = get_assignment_engine().assign(pk, pickup)
        except DispatchError as error:
            return error_response(error)
        return Response(AssignmentResultSerializer(result).data)
