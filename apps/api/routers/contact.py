"""Contact form endpoint."""

from fastapi import APIRouter, Depends, HTTPException

from apps.api.deps import get_booking_service
from domain.errors import NotificationError
from domain.models import ContactMessage
from services.booking_service import BookingService


router = APIRouter(tags=["contact"])


@router.post("/contact")
async def send_contact_message(
    body: ContactMessage,
    service: BookingService = Depends(get_booking_service),
):
    try:
        await service.send_contact(body)
    except NotificationError:
        raise HTTPException(status_code=502, detail="メールの送信に失敗しました。")
    return {"success": True}
