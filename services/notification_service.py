"""
Transactional email through Resend.
Booking confirmations (with a calendar attachment), admin notifications and
contact form messages.
"""
import asyncio
import html
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

import resend

from core.utils_datetime import format_datetime_japanese, to_utc
from domain.errors import NotificationError
from domain.models import BookingRecord, ContactMessage


logger = logging.getLogger(__name__)

SITE_NAME = "英語探検隊"


class Notifier(Protocol):
    """Outbound notifications used by the booking and contact flows."""

    async def send_booking_confirmation(self, booking: BookingRecord) -> None:
        ...

    async def send_admin_booking_notification(self, booking: BookingRecord) -> None:
        ...

    async def send_contact_message(self, message: ContactMessage) -> None:
        ...


def format_ics_datetime(dt: datetime) -> str:
    return to_utc(dt).strftime("%Y%m%dT%H%M%SZ")


def build_ics(
    summary: str,
    description: str,
    start: datetime,
    end: datetime,
    location: Optional[str] = None,
) -> str:
    """Build a single-event iCalendar document."""
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Eigotankentai//Booking//EN",
        "BEGIN:VEVENT",
        f"UID:{uuid4()}@eigotankentai.com",
        f"DTSTAMP:{format_ics_datetime(datetime.now().astimezone())}",
        f"DTSTART:{format_ics_datetime(start)}",
        f"DTEND:{format_ics_datetime(end)}",
        f"SUMMARY:{summary}",
        f"DESCRIPTION:{description}",
    ]
    if location:
        lines.append(f"LOCATION:{location}")
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines)


def format_yen(amount: int) -> str:
    return "無料" if amount == 0 else f"{amount:,}円"


def price_breakdown_html(booking: BookingRecord) -> str:
    items = [f"<li>通常料金: <strong>{booking.regular_price:,}円</strong></li>"]
    if booking.coupon and booking.discount_amount:
        items.append(f"<li>クーポン ({html.escape(booking.coupon)}): -{booking.discount_amount:,}円</li>")
    items.append(f"<li>合計金額: <strong>{format_yen(booking.final_price)}</strong></li>")
    items.append(f"<li>参加者数: <strong>{booking.participants}名</strong></li>")
    return "<ul>" + "".join(items) + "</ul>"


class ResendNotifier:
    """Notifier backed by the Resend API. The SDK is blocking; sends run in a worker thread."""

    def __init__(self, api_key: str, mail_from: str, admin_email: str, tz_name: str = "Asia/Tokyo"):
        if api_key:
            resend.api_key = api_key
        else:
            logger.warning("Resend API key not configured; emails will fail")
        self._configured = bool(api_key)
        self.mail_from = mail_from
        self.admin_email = admin_email
        self.tz_name = tz_name

    async def _send(self, params: Dict[str, Any]) -> None:
        if not self._configured:
            raise NotificationError("Resend API key not configured")
        try:
            await asyncio.to_thread(resend.Emails.send, params)
        except Exception as e:
            logger.error(f"Failed to send email to {params.get('to')}: {e}")
            raise NotificationError(f"Email sending failed: {e}") from e
        logger.info(f"Email sent successfully to {params.get('to')} - Subject: {params.get('subject')}")

    def _calendar_attachment(self, booking: BookingRecord, summary: str) -> List[Dict[str, Any]]:
        end = booking.date + timedelta(minutes=booking.duration)
        ics = build_ics(summary=summary, description=booking.details, start=booking.date, end=end)
        return [{"filename": "booking.ics", "content": list(ics.encode("utf-8"))}]

    async def send_booking_confirmation(self, booking: BookingRecord) -> None:
        """Confirmation to the customer, BCC to the admin address."""
        when = format_datetime_japanese(booking.date, self.tz_name)
        body = (
            f"<h2>{html.escape(booking.name)} 様</h2>"
            "<p>このたびはご予約いただきありがとうございます。<br>"
            "ご希望の日時でレッスンを承りました。</p>"
            f"<p><strong>日時:</strong> {when}</p>"
            f"<p><strong>ご予約内容:</strong></p>{price_breakdown_html(booking)}"
            "<p>レッスン当日を楽しみにしております！</p>"
        )
        await self._send({
            "from": self.mail_from,
            "to": [booking.email],
            "bcc": [self.admin_email],
            "subject": "予約確定",
            "html": body,
            "attachments": self._calendar_attachment(booking, f"レッスン＠{SITE_NAME}"),
        })

    async def send_admin_booking_notification(self, booking: BookingRecord) -> None:
        when = format_datetime_japanese(booking.date, self.tz_name)
        body = (
            f"<p>New booking from <strong>{html.escape(booking.name)} ({html.escape(booking.kana)})</strong> "
            f"&lt;{html.escape(booking.email)}&gt; on {when}</p>"
            f"<p>Lesson type: {booking.lesson_type.value}, payment: {booking.payment_method.value}</p>"
            f"{price_breakdown_html(booking)}"
        )
        await self._send({
            "from": self.mail_from,
            "to": [self.admin_email],
            "subject": "New Booking",
            "html": body,
            "attachments": self._calendar_attachment(booking, f"Lesson with {booking.name}"),
        })

    async def send_contact_message(self, message: ContactMessage) -> None:
        """Forward a contact form message to the admin and send the sender a receipt."""
        received_at = format_datetime_japanese(datetime.now().astimezone(), self.tz_name)
        text = html.escape(message.message).replace("\n", "<br>")
        await self._send({
            "from": self.mail_from,
            "to": [self.admin_email],
            "reply_to": message.email,
            "subject": f"[お問い合わせ] {message.subject}",
            "html": (
                "<h2>新しいお問い合わせ</h2>"
                f"<p><strong>お名前:</strong> {html.escape(message.name)}</p>"
                f"<p><strong>メールアドレス:</strong> {html.escape(message.email)}</p>"
                f"<p><strong>件名:</strong> {html.escape(message.subject)}</p>"
                f"<div>{text}</div>"
                f"<p><strong>送信日時:</strong> {received_at}</p>"
            ),
        })
        await self._send({
            "from": self.mail_from,
            "to": [message.email],
            "subject": f"お問い合わせを受付いたしました - {SITE_NAME}",
            "html": (
                f"<p>こんにちは、{html.escape(message.name)} 様</p>"
                "<p>以下の内容でお問い合わせを受付いたしました。</p>"
                f"<p><strong>件名:</strong> {html.escape(message.subject)}</p>"
                f"<div>{text}</div>"
                "<p>通常24時間以内にお返事いたします。</p>"
            ),
        })
