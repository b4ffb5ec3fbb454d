"""FastAPI dependencies resolving services from the application container."""

from fastapi import Request

from apps.api.container import ServiceContainer
from services.availability_service import AvailabilityService
from services.booking_service import BookingService
from services.conflict_guard import ConflictGuard


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_booking_service(request: Request) -> BookingService:
    return get_container(request).bookings


def get_availability_service(request: Request) -> AvailabilityService:
    return get_container(request).availability


def get_conflict_guard(request: Request) -> ConflictGuard:
    return get_container(request).guard
