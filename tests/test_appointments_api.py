from sqlalchemy.exc import OperationalError

from app.models.appointment import Appointment, AppointmentStatus
from app.models.time_slot import AvailabilityStatus
from app.services import reservation_service

from tests.factories import create_slot, login, slot_status


def booking_payload(slot, **overrides):
    payload = {
        "time_slot_uid": slot.time_slot_uid,
        "customer_name": "Alice",
        "customer_email": "a@x.com",
        "customer_phone": "555-1",
    }
    payload.update(overrides)
    return payload


class TestBooking:

    def test_guest_books_slot(self, client, db, admin_user):
        slot = create_slot(db, admin_user)

        response = client.post("/api/appointments", json=booking_payload(slot))
        assert response.status_code == 201

        data = response.json()
        assert data["status"] == "booked"
        assert data["user_uid"] is None
        assert data["time_slot_uid"] == slot.time_slot_uid
        assert data["booking_reference"].startswith("BR")
        assert slot_status(db, slot.time_slot_uid) == AvailabilityStatus.BOOKED

    def test_second_booking_conflicts(self, client, db, admin_user):
        slot = create_slot(db, admin_user)
        first = client.post("/api/appointments", json=booking_payload(slot))

        response = client.post(
            "/api/appointments",
            json=booking_payload(slot, customer_name="Bob", customer_email="b@x.com", customer_phone="555-2")
        )
        assert response.status_code == 409
        assert response.json()["error"] == "Conflict"

        db.expire_all()
        holders = db.query(Appointment).filter(Appointment.time_slot_uid == slot.time_slot_uid).all()
        assert [a.appointment_uid for a in holders] == [first.json()["appointment_uid"]]

    def test_booking_missing_slot(self, client, test_db):
        response = client.post("/api/appointments", json={
            "time_slot_uid": "ts_missing",
            "customer_name": "Alice",
            "customer_email": "a@x.com",
            "customer_phone": "555-1"
        })
        assert response.status_code == 404

    def test_booking_requires_contact_fields(self, client, db, admin_user):
        slot = create_slot(db, admin_user)
        payload = booking_payload(slot)
        del payload["customer_phone"]

        response = client.post("/api/appointments", json=payload)
        assert response.status_code == 422
        assert slot_status(db, slot.time_slot_uid) == AvailabilityStatus.AVAILABLE

    def test_signed_in_booking_is_owned_by_token_user(self, client, db, admin_user, customer, other_customer):
        slot = create_slot(db, admin_user)
        headers = login(client, customer.email)

        response = client.post(
            "/api/appointments",
            json=booking_payload(slot, user_uid=other_customer.user_uid),
            headers=headers
        )
        assert response.status_code == 201
        assert response.json()["user_uid"] == customer.user_uid

    def test_guest_cannot_claim_an_owner(self, client, db, admin_user, customer):
        slot = create_slot(db, admin_user)

        response = client.post("/api/appointments", json=booking_payload(slot, user_uid=customer.user_uid))
        assert response.status_code == 201
        assert response.json()["user_uid"] is None


class TestCustomerAppointments:

    def _book(self, client, slot, headers):
        response = client.post("/api/appointments", json=booking_payload(slot), headers=headers)
        assert response.status_code == 201
        return response.json()

    def test_lists_own_appointments(self, client, db, admin_user, customer, other_customer):
        headers = login(client, customer.email)
        self._book(client, create_slot(db, admin_user, start_hour=9), headers)
        self._book(client, create_slot(db, admin_user, start_hour=10), login(client, other_customer.email))

        response = client.get("/api/appointments", headers=headers)
        assert response.status_code == 200
        assert [a["user_uid"] for a in response.json()] == [customer.user_uid]

    def test_get_appointment_detail(self, client, db, admin_user, customer, other_customer):
        headers = login(client, customer.email)
        appointment = self._book(client, create_slot(db, admin_user), headers)
        url = f"/api/appointments/{appointment['appointment_uid']}"

        assert client.get(url, headers=headers).status_code == 200
        assert client.get(url, headers=login(client, other_customer.email)).status_code == 403
        assert client.get(url, headers=login(client, admin_user.email)).status_code == 200

    def test_reschedule(self, client, db, admin_user, customer):
        headers = login(client, customer.email)
        old_slot = create_slot(db, admin_user, start_hour=9)
        new_slot = create_slot(db, admin_user, start_hour=10)
        appointment = self._book(client, old_slot, headers)

        response = client.put(
            f"/api/appointments/{appointment['appointment_uid']}/reschedule",
            json={"new_time_slot_uid": new_slot.time_slot_uid, "notes": "running late"},
            headers=headers
        )
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "rescheduled"
        assert data["time_slot_uid"] == new_slot.time_slot_uid
        assert data["notes"] == "running late"
        assert slot_status(db, old_slot.time_slot_uid) == AvailabilityStatus.AVAILABLE
        assert slot_status(db, new_slot.time_slot_uid) == AvailabilityStatus.BOOKED

    def test_reschedule_requires_new_slot(self, client, db, admin_user, customer):
        headers = login(client, customer.email)
        appointment = self._book(client, create_slot(db, admin_user), headers)

        response = client.put(
            f"/api/appointments/{appointment['appointment_uid']}/reschedule",
            json={},
            headers=headers
        )
        assert response.status_code == 422

    def test_reschedule_requires_authentication(self, client, db, admin_user, customer):
        old_slot = create_slot(db, admin_user, start_hour=9)
        new_slot = create_slot(db, admin_user, start_hour=10)
        appointment = self._book(client, old_slot, login(client, customer.email))

        response = client.put(
            f"/api/appointments/{appointment['appointment_uid']}/reschedule",
            json={"new_time_slot_uid": new_slot.time_slot_uid}
        )
        assert response.status_code in (401, 403)
        assert slot_status(db, new_slot.time_slot_uid) == AvailabilityStatus.AVAILABLE

    def test_non_owner_cannot_cancel(self, client, db, admin_user, customer, other_customer):
        slot = create_slot(db, admin_user)
        appointment = self._book(client, slot, login(client, customer.email))

        response = client.delete(
            f"/api/appointments/{appointment['appointment_uid']}",
            headers=login(client, other_customer.email)
        )
        assert response.status_code == 403
        assert response.json()["error"] == "Unauthorized"
        assert slot_status(db, slot.time_slot_uid) == AvailabilityStatus.BOOKED

    def test_cancel(self, client, db, admin_user, customer):
        headers = login(client, customer.email)
        slot = create_slot(db, admin_user)
        appointment = self._book(client, slot, headers)

        response = client.delete(f"/api/appointments/{appointment['appointment_uid']}", headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert slot_status(db, slot.time_slot_uid) == AvailabilityStatus.AVAILABLE

        # Repeating the cancel is harmless
        response = client.delete(f"/api/appointments/{appointment['appointment_uid']}", headers=headers)
        assert response.status_code == 200
        assert slot_status(db, slot.time_slot_uid) == AvailabilityStatus.AVAILABLE

    def test_cancel_missing_appointment(self, client, customer):
        response = client.delete("/api/appointments/apt_missing", headers=login(client, customer.email))
        assert response.status_code == 404


class TestAdminAppointments:

    def _book(self, client, slot):
        response = client.post("/api/appointments", json=booking_payload(slot))
        assert response.status_code == 201
        return response.json()

    def test_lists_appointments_by_status(self, client, db, admin_user):
        headers = login(client, admin_user.email)
        kept = self._book(client, create_slot(db, admin_user, start_hour=9))
        dropped = self._book(client, create_slot(db, admin_user, start_hour=10))
        client.delete(f"/api/appointments/{dropped['appointment_uid']}", headers=headers)

        response = client.get("/api/admin/appointments", headers=headers)
        assert response.status_code == 200
        assert len(response.json()) == 2

        response = client.get("/api/admin/appointments", params={"status": "booked"}, headers=headers)
        assert [a["appointment_uid"] for a in response.json()] == [kept["appointment_uid"]]

    def test_customer_cannot_list_admin_appointments(self, client, customer):
        response = client.get("/api/admin/appointments", headers=login(client, customer.email))
        assert response.status_code == 403

    def test_admin_moves_appointment(self, client, db, admin_user):
        headers = login(client, admin_user.email)
        old_slot = create_slot(db, admin_user, start_hour=9)
        new_slot = create_slot(db, admin_user, start_hour=10)
        appointment = self._book(client, old_slot)

        response = client.put(
            f"/api/admin/appointments/{appointment['appointment_uid']}",
            json={"time_slot_uid": new_slot.time_slot_uid, "status": "rescheduled"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["time_slot_uid"] == new_slot.time_slot_uid
        assert response.json()["status"] == "rescheduled"
        assert slot_status(db, old_slot.time_slot_uid) == AvailabilityStatus.AVAILABLE

    def test_admin_cancels_appointment(self, client, db, admin_user):
        headers = login(client, admin_user.email)
        slot = create_slot(db, admin_user)
        appointment = self._book(client, slot)

        response = client.put(
            f"/api/admin/appointments/{appointment['appointment_uid']}",
            json={"status": "cancelled", "notes": "customer called"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["notes"] == "customer called"
        assert slot_status(db, slot.time_slot_uid) == AvailabilityStatus.AVAILABLE

    def test_admin_cannot_reactivate_cancelled(self, client, db, admin_user):
        headers = login(client, admin_user.email)
        appointment = self._book(client, create_slot(db, admin_user))
        client.delete(f"/api/appointments/{appointment['appointment_uid']}", headers=headers)

        response = client.put(
            f"/api/admin/appointments/{appointment['appointment_uid']}",
            json={"status": "booked"},
            headers=headers
        )
        assert response.status_code == 409

        db.expire_all()
        stored = db.get(Appointment, appointment["appointment_uid"])
        assert stored.status == AppointmentStatus.CANCELLED

    def test_admin_updates_notes_only(self, client, db, admin_user):
        headers = login(client, admin_user.email)
        slot = create_slot(db, admin_user)
        appointment = self._book(client, slot)

        response = client.put(
            f"/api/admin/appointments/{appointment['appointment_uid']}",
            json={"time_slot_uid": slot.time_slot_uid, "status": "booked", "notes": "VIP"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["notes"] == "VIP"
        assert response.json()["status"] == "booked"

    def test_failed_admin_cancel_keeps_status_and_notes(self, client, db, admin_user, monkeypatch):
        headers = login(client, admin_user.email)
        slot = create_slot(db, admin_user)
        appointment = self._book(client, slot)

        def broken_notification(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("connection lost"))

        monkeypatch.setattr(reservation_service, "record_notification", broken_notification)

        response = client.put(
            f"/api/admin/appointments/{appointment['appointment_uid']}",
            json={"status": "cancelled", "notes": "customer called"},
            headers=headers
        )
        assert response.status_code == 503

        db.expire_all()
        stored = db.get(Appointment, appointment["appointment_uid"])
        assert stored.status == AppointmentStatus.BOOKED
        assert stored.notes is None
        assert slot_status(db, slot.time_slot_uid) == AvailabilityStatus.BOOKED

    def test_admin_adds_notes_to_cancelled_appointment(self, client, db, admin_user):
        headers = login(client, admin_user.email)
        slot = create_slot(db, admin_user)
        appointment = self._book(client, slot)
        client.delete(f"/api/appointments/{appointment['appointment_uid']}", headers=headers)

        response = client.put(
            f"/api/admin/appointments/{appointment['appointment_uid']}",
            json={"status": "cancelled", "notes": "refund issued"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["notes"] == "refund issued"
        assert slot_status(db, slot.time_slot_uid) == AvailabilityStatus.AVAILABLE
