"""API views for the booking domain."""

from __future__ import annotations

from drf_spectacular.utils import extend_schema  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.properties.models import Property

from .serializers import (
    BookedDatesSerializer,
    BookingCreateSerializer,
    BookingSerializer,
    BookingStatusSerializer,
)
from .services import get_booking_service


class IsTenant(permissions.BasePermission):
    """Только арендаторы могут запрашивать бронирования."""

    message = "Only tenants can perform this action."

    def has_permission(self, request, view) -> bool:  # type: ignore
        user = request.user
        return bool(user and user.is_authenticated and user.is_tenant())


class BookingViewSet(viewsets.ViewSet):
    """Viewset для создания бронирований и решений по ним."""

    permission_classes = [permissions.IsAuthenticated]

    @property
    def service(self):
        return get_booking_service()

    def get_permissions(self):  # type: ignore
        if self.action in ("create", "my_bookings"):
            return [IsTenant()]
        if self.action == "property_dates":
            return [permissions.AllowAny()]
        return super().get_permissions()

    @extend_schema(
        summary="Request a booking",
        request=BookingCreateSerializer,
        responses={201: BookingSerializer},
        tags=["Bookings"],
    )
    def create(self, request):  # type: ignore
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        booking = self.service.create(
            data["propertyId"],
            request.user.pk,
            data["startDate"],
            data["endDate"],
            total_price=data.get("totalPrice"),
        )
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Booking detail",
        responses={200: BookingSerializer},
        tags=["Bookings"],
    )
    def retrieve(self, request, pk=None):  # type: ignore
        booking = self.service.get(pk, request.user.as_actor())
        return Response(BookingSerializer(booking).data)

    @extend_schema(
        summary="Confirm, reject or cancel a booking",
        request=BookingStatusSerializer,
        responses={200: BookingSerializer},
        tags=["Bookings"],
    )
    def update(self, request, pk=None):  # type: ignore
        serializer = BookingStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = self.service.update_status(
            pk,
            request.user.as_actor(),
            serializer.validated_data["status"],
            reason=serializer.validated_data["reason"],
        )
        return Response(BookingSerializer(booking).data)

    @extend_schema(
        summary="Bookings of the current tenant",
        responses={200: BookingSerializer(many=True)},
        tags=["Bookings"],
    )
    @action(detail=False, methods=["get"], url_path="my-bookings", url_name="my-bookings")
    def my_bookings(self, request):  # type: ignore
        bookings = self.service.my_bookings(request.user.pk)
        properties = Property.objects.in_bulk({b.property_id for b in bookings})
        serializer = BookingSerializer(bookings, many=True, context={"properties": properties})
        return Response(serializer.data)

    @extend_schema(
        summary="Bookings of a property (owner or admin)",
        responses={200: BookingSerializer(many=True)},
        tags=["Bookings"],
    )
    @action(
        detail=False,
        methods=["get"],
        url_path=r"property/(?P<property_id>[^/.]+)",
        url_name="property-bookings",
    )
    def property_bookings(self, request, property_id=None):  # type: ignore
        bookings = self.service.bookings_for_property(property_id, request.user.as_actor())
        return Response(BookingSerializer(bookings, many=True).data)

    @extend_schema(
        summary="Dates another tenant cannot book",
        responses={200: BookedDatesSerializer(many=True)},
        tags=["Bookings - Public"],
    )
    @action(
        detail=False,
        methods=["get"],
        url_path=r"property/(?P<property_id>[^/.]+)/dates",
        url_name="property-dates",
    )
    def property_dates(self, request, property_id=None):  # type: ignore
        intervals = self.service.booked_dates_for(property_id)
        return Response(BookedDatesSerializer(intervals, many=True).data)
