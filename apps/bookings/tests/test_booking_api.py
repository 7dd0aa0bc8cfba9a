"""Integration tests for booking API endpoints."""

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.bookings.services import get_booking_service
from apps.bookings.tasks import expire_stale_pending
from apps.properties.models import Property
from apps.users.models import User


class BookingAPITests(APITestCase):
    """Covers создание, конфликты, подтверждение и отмену бронирований."""

    def setUp(self) -> None:
        get_booking_service.cache_clear()
        self.tenant = User.objects.create_user(
            email="tenant@example.com",
            password="TenantPass123",
            role=User.RoleChoices.TENANT,
        )
        self.other_tenant = User.objects.create_user(
            email="other-tenant@example.com",
            password="TenantPass123",
            role=User.RoleChoices.TENANT,
        )
        self.landlord = User.objects.create_user(
            email="landlord@example.com",
            password="LandlordPass123",
            role=User.RoleChoices.LANDLORD,
        )
        self.other_landlord = User.objects.create_user(
            email="other-landlord@example.com",
            password="LandlordPass123",
            role=User.RoleChoices.LANDLORD,
        )
        self.property = Property.objects.create(
            owner=self.landlord,
            title="Sea view apartment",
            address="12 Marine Drive, Mumbai",
            image="sea-view.jpg",
            status=Property.Status.ACTIVE,
            price_per_night=Decimal("2500.00"),
        )
        self.today = timezone.localdate()
        self.client.force_authenticate(self.tenant)
        self.list_url = reverse("booking-list")

    def _payload(self, start_offset: int, nights: int, **extra) -> dict:
        start = self.today + timedelta(days=start_offset)
        return {
            "propertyId": self.property.id,
            "startDate": str(start),
            "endDate": str(start + timedelta(days=nights)),
            **extra,
        }

    def _create(self, start_offset: int, nights: int, user=None, **extra):
        self.client.force_authenticate(user or self.tenant)
        return self.client.post(self.list_url, self._payload(start_offset, nights, **extra), format="json")

    def _set_status(self, booking_id, new_status: str, user):
        self.client.force_authenticate(user)
        url = reverse("booking-detail", kwargs={"pk": booking_id})
        return self.client.put(url, {"status": new_status}, format="json")

    def test_tenant_can_create_booking(self) -> None:
        response = self._create(5, 3)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["status"], "pending")
        self.assertEqual(response.data["propertyId"], self.property.id)
        self.assertEqual(response.data["tenantId"], self.tenant.id)
        self.assertEqual(Decimal(str(response.data["totalPrice"])), Decimal("7500.00"))
        self.assertEqual(response.data["currency"], "INR")
        booking = Booking.objects.get()
        self.assertEqual(booking.tenant, self.tenant)
        self.assertEqual(booking.landlord, self.landlord)
        self.property.refresh_from_db()
        self.assertEqual(self.property.calendar_version, 1)

    def test_client_total_price_is_kept(self) -> None:
        response = self._create(5, 3, totalPrice="7000.00")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(Booking.objects.get().total_price, Decimal("7000.00"))

    def test_negative_total_price_is_rejected(self) -> None:
        response = self._create(5, 3, totalPrice="-10.00")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["code"], "invalid_price")
        self.assertFalse(Booking.objects.exists())

    def test_anonymous_user_cannot_create(self) -> None:
        self.client.force_authenticate(None)

        response = self.client.post(self.list_url, self._payload(5, 3), format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn("message", response.data)

    def test_landlord_cannot_request_booking(self) -> None:
        response = self._create(5, 3, user=self.other_landlord)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invalid_range_is_rejected(self) -> None:
        response = self._create(5, 0)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["code"], "invalid_range")

    def test_missing_fields_are_reported(self) -> None:
        response = self.client.post(self.list_url, {"propertyId": self.property.id}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid")
        self.assertIn("startDate", response.data["errors"])

    def test_unknown_property_is_not_found(self) -> None:
        payload = self._payload(5, 3)
        payload["propertyId"] = self.property.id + 1000

        response = self.client.post(self.list_url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["code"], "not_found")

    def test_landlord_confirms_and_overlap_is_rejected(self) -> None:
        first = self._create(5, 5)
        pending = self._create(7, 4, user=self.other_tenant)

        response = self._set_status(first.data["id"], "confirmed", self.landlord)

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "confirmed")
        auto_rejected = Booking.objects.get(pk=pending.data["id"])
        self.assertEqual(auto_rejected.status, Booking.Status.CANCELLED)
        self.assertEqual(auto_rejected.cancellation_source, Booking.CancellationSource.SYSTEM)

        conflict = self._create(6, 2, user=self.other_tenant)
        self.assertEqual(conflict.status_code, status.HTTP_409_CONFLICT, conflict.data)
        self.assertEqual(conflict.data["code"], "overlaps_confirmed")
        self.assertEqual(conflict.data["conflictingIds"], [first.data["id"]])

        adjacent = self._create(10, 2, user=self.other_tenant)
        self.assertEqual(adjacent.status_code, status.HTTP_201_CREATED, adjacent.data)

    def test_tenant_cannot_confirm(self) -> None:
        created = self._create(5, 3)

        response = self._set_status(created.data["id"], "confirmed", self.tenant)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "not_authorized")
        self.assertEqual(Booking.objects.get().status, Booking.Status.PENDING)

    def test_cancelled_booking_cannot_change(self) -> None:
        created = self._create(5, 3)
        self._set_status(created.data["id"], "cancelled", self.tenant)

        response = self._set_status(created.data["id"], "confirmed", self.landlord)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "invalid_transition")

    def test_invalid_status_value(self) -> None:
        created = self._create(5, 3)

        response = self._set_status(created.data["id"], "archived", self.landlord)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_booked_dates_are_public_and_confirmed_only(self) -> None:
        confirmed = self._create(5, 3)
        self._set_status(confirmed.data["id"], "confirmed", self.landlord)
        self._create(20, 2, user=self.other_tenant)
        self.client.force_authenticate(None)

        url = reverse("booking-property-dates", kwargs={"property_id": self.property.id})
        response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        start = self.today + timedelta(days=5)
        self.assertEqual(
            response.data,
            [{"startDate": str(start), "endDate": str(start + timedelta(days=3)), "status": "confirmed"}],
        )

    def test_my_bookings_embed_property(self) -> None:
        self._create(5, 3)
        self._create(15, 3, user=self.other_tenant)

        self.client.force_authenticate(self.tenant)
        response = self.client.get(reverse("booking-my-bookings"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        embedded = response.data[0]["property"]
        self.assertEqual(embedded["title"], "Sea view apartment")
        self.assertEqual(embedded["image"], "sea-view.jpg")

    def test_property_bookings_for_owner_only(self) -> None:
        self._create(5, 3)
        url = reverse("booking-property-bookings", kwargs={"property_id": self.property.id})

        self.client.force_authenticate(self.landlord)
        owner_response = self.client.get(url)
        self.client.force_authenticate(self.other_landlord)
        foreign_response = self.client.get(url)

        self.assertEqual(owner_response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(owner_response.data), 1)
        self.assertEqual(foreign_response.status_code, status.HTTP_403_FORBIDDEN)

    def test_booking_detail(self) -> None:
        created = self._create(5, 3)
        url = reverse("booking-detail", kwargs={"pk": created.data["id"]})

        own = self.client.get(url)
        self.client.force_authenticate(self.other_tenant)
        foreign = self.client.get(url)
        missing = self.client.get(reverse("booking-detail", kwargs={"pk": uuid.uuid4()}))

        self.assertEqual(own.status_code, status.HTTP_200_OK)
        self.assertEqual(own.data["id"], created.data["id"])
        self.assertEqual(foreign.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)

    def test_malformed_booking_id_is_not_found(self) -> None:
        self.client.force_authenticate(self.landlord)
        url = reverse("booking-detail", kwargs={"pk": "123"})

        updated = self.client.put(url, {"status": "confirmed"}, format="json")
        fetched = self.client.get(url)

        for response in (updated, fetched):
            self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
            self.assertTrue(response["Content-Type"].startswith("application/json"))
            self.assertEqual(response.data["code"], "not_found")
            self.assertIn("123", response.data["message"])

    def test_new_owner_decides_after_transfer(self) -> None:
        booking_id = self._create(5, 3).data["id"]
        self.property.owner = self.other_landlord
        self.property.save(update_fields=["owner"])

        previous_owner = self._set_status(booking_id, "confirmed", self.landlord)
        new_owner = self._set_status(booking_id, "confirmed", self.other_landlord)

        self.assertEqual(previous_owner.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(new_owner.status_code, status.HTTP_200_OK, new_owner.data)
        self.assertEqual(new_owner.data["landlordId"], self.other_landlord.pk)
        self.assertEqual(Booking.objects.get(pk=booking_id).landlord_id, self.other_landlord.pk)



@pytest.mark.django_db
def test_expire_task_cancels_lapsed_requests():
    get_booking_service.cache_clear()
    tenant = User.objects.create_user(email="late@example.com", password="TenantPass123")
    landlord = User.objects.create_user(
        email="owner@example.com", password="LandlordPass123", role=User.RoleChoices.LANDLORD
    )
    prop = Property.objects.create(owner=landlord, title="Cottage", price_per_night=Decimal("1000.00"))
    today = timezone.localdate()
    lapsed = Booking.objects.create(
        property=prop,
        tenant=tenant,
        landlord=landlord,
        start_date=today - timedelta(days=2),
        end_date=today + timedelta(days=1),
        total_price=Decimal("3000.00"),
    )
    prop.bump_calendar_version()

    result = expire_stale_pending()

    assert result == {"expired": 1}
    lapsed.refresh_from_db()
    assert lapsed.status == Booking.Status.CANCELLED
    assert lapsed.cancellation_source == Booking.CancellationSource.SYSTEM
    assert lapsed.cancellation_reason == "expired"


def test_booking_model_loads_with_property_relation():
    field = Booking._meta.get_field("property")

    assert field.related_model is Property
    assert field.remote_field.related_name == "bookings"


def test_service_uses_configured_lock_timeout(settings):
    settings.BOOKINGS_LOCK_TIMEOUT = 0.25
    get_booking_service.cache_clear()
    try:
        assert get_booking_service().locks.timeout == 0.25
    finally:
        get_booking_service.cache_clear()

