"""HTTP tests for the booking API."""
import httpx
import pytest
import pytest_asyncio

from conftest import lesson_start
from apps.api.main import create_app


@pytest_asyncio.fixture
async def client(container):
    app = create_app(container=container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.integration
class TestAvailabilityEndpoints:
    """Test the availability endpoints."""

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_weekly_availability_seeded(self, client):
        """Test the default schedule is served from an empty table."""
        response = await client.get("/api/v1/availability")

        assert response.status_code == 200
        days = [entry["day"] for entry in response.json()]
        assert days == ["monday", "tuesday", "wednesday", "thursday", "friday"]
        assert response.json()[0]["ranges"][0] == {"start": "12:00", "end": "13:00"}

    async def test_time_options_mark_booked_slot(self, client, booking_service, booking_payload):
        """Test a booked slot is disabled in the picker."""
        cash = dict(booking_payload, payment_method="cash", payment_intent_id=None)
        await booking_service.submit(cash)

        response = await client.get("/api/v1/availability/2025-03-17/slots")

        assert response.status_code == 200
        options = {o["value"]: o for o in response.json()}
        assert len(options) == 8
        assert options["13:00"]["disabled"] is True
        assert options["13:00"]["label"].endswith("（予約済み）")
        assert options["12:00"]["disabled"] is False

    async def test_bookable_dates(self, client):
        """Test the date picker starts three days after today."""
        response = await client.get("/api/v1/availability/dates")

        assert response.status_code == 200
        dates = [d["date"] for d in response.json()]
        assert dates[0] == "2025-03-13"
        assert "2025-03-15" not in dates

    async def test_check_availability(self, client, booking_service, booking_payload):
        """Test the single slot check before and after a booking."""
        body = {"date": lesson_start(13).isoformat(), "duration": 60}

        response = await client.post("/api/v1/check-availability", json=body)
        assert response.json()["available"] is True

        await booking_service.submit(dict(booking_payload, payment_method="cash", payment_intent_id=None))

        response = await client.post("/api/v1/check-availability", json=body)
        assert response.status_code == 200
        assert response.json()["available"] is False


@pytest.mark.integration
class TestBookingEndpoints:
    """Test booking submission over HTTP."""

    async def test_create_booking(self, client, booking_payload, payments, booking_service):
        payments.succeed("pi_test_1", 2500)

        response = await client.post("/api/v1/bookings", json=booking_payload)
        await booking_service.drain_notifications()

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["booking"]["email"] == "taro@example.com"
        assert data["booking"]["final_price"] == 2500

    async def test_invalid_booking(self, client):
        response = await client.post("/api/v1/bookings", json={"customer_name": "山田"})

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["errors"]

    async def test_taken_slot(self, client, booking_payload):
        """Test the second booking of a slot gets 409 with the slot taken message."""
        cash = dict(booking_payload, payment_method="cash", payment_intent_id=None)
        first = await client.post("/api/v1/bookings", json=cash)
        assert first.status_code == 201

        second = await client.post("/api/v1/bookings", json=dict(cash, customer_email="hanako@example.com"))

        assert second.status_code == 409
        assert second.json()["error"] == "この時間はすでに予約されています。別の時間をお選びください。"
        assert second.json()["code"] == "SLOT_CONFLICT"

    async def test_payment_failure(self, client, booking_payload):
        response = await client.post("/api/v1/bookings", json=booking_payload)
        assert response.status_code == 402

    async def test_list_booked_intervals(self, client, booking_payload):
        cash = dict(booking_payload, payment_method="cash", payment_intent_id=None)
        await client.post("/api/v1/bookings", json=cash)

        by_date = await client.get("/api/v1/bookings", params={"date": "2025-03-17"})
        by_range = await client.get("/api/v1/bookings", params={"start": "2025-03-18", "end": "2025-03-20"})

        assert by_date.status_code == 200
        assert len(by_date.json()) == 1
        assert by_date.json()[0]["duration"] == 60
        assert by_range.json() == []

    async def test_list_requires_date_or_range(self, client):
        response = await client.get("/api/v1/bookings")
        assert response.status_code == 400

    async def test_free_trial_eligibility(self, client, booking_payload):
        response = await client.get("/api/v1/bookings/free-trial", params={"email": "taro@example.com"})
        assert response.json()["eligible"] is True

        cash = dict(booking_payload, payment_method="cash", payment_intent_id=None)
        await client.post("/api/v1/bookings", json=cash)

        response = await client.get("/api/v1/bookings/free-trial", params={"email": "taro@example.com"})
        assert response.json()["eligible"] is False


@pytest.mark.integration
class TestPaymentAndContactEndpoints:
    """Test the payment intent and contact endpoints."""

    async def test_payment_intent(self, client):
        response = await client.post(
            "/api/v1/payments/intent",
            json={"lesson_type": "online", "participants": 3},
        )

        assert response.status_code == 200
        assert response.json()["amount"] == 3500
        assert "client_secret" in response.json()

    async def test_free_payment_intent(self, client):
        response = await client.post(
            "/api/v1/payments/intent",
            json={"lesson_type": "online", "participants": 1, "coupon": "freelesson"},
        )
        assert response.json() == {"free": True, "amount": 0, "currency": "jpy"}

    async def test_unknown_coupon(self, client):
        response = await client.post(
            "/api/v1/payments/intent",
            json={"lesson_type": "online", "participants": 1, "coupon": "bogus"},
        )
        assert response.status_code == 400

    async def test_contact(self, client, notifier):
        response = await client.post(
            "/api/v1/contact",
            json={"name": "山田", "email": "taro@example.com", "subject": "質問", "message": "こんにちは"},
        )

        assert response.status_code == 200
        assert len(notifier.contact_messages) == 1
