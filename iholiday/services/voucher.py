"""
Voucher rendering - A4 PDF vouchers for confirmed flight and hotel bookings
"""

from datetime import datetime
from io import BytesIO
import logging
from typing import Any, Dict, List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from iholiday.core.config import Settings
from iholiday.core.errors import BookingFlowError
from iholiday.models.booking import Booking, BookingType

logger = logging.getLogger(__name__)

BRAND_COLOR = colors.HexColor("#0B5ED7")

FLIGHT_NOTES = [
    "Please carry a valid government-issued photo ID for all passengers.",
    "Web check-in opens 48 hours before departure on the airline website.",
    "Arrive at the airport at least 2 hours before domestic and 3 hours before international departures.",
    "Baggage allowance is as per airline policy and the fare purchased.",
    "Changes and cancellations are subject to airline fare rules and fees.",
]

HOTEL_NOTES = [
    "Please present this voucher and a valid photo ID at check-in.",
    "Standard check-in time is 14:00 and check-out time is 12:00 unless stated otherwise.",
    "Incidental charges are payable directly at the hotel.",
]

CABIN_NAMES = {"E": "Economy", "PE": "Premium Economy", "B": "Business", "F": "First"}


def _fmt_datetime(value: Optional[str], fmt: str) -> str:
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value).strftime(fmt)
    except ValueError:
        return value


def _duration(minutes: Any) -> str:
    try:
        minutes = int(minutes)
    except (TypeError, ValueError):
        return "-"
    return f"{minutes // 60}h {minutes % 60:02d}m"


def _money(amount: Any, currency: str) -> str:
    return f"{currency} {float(amount):,.2f}"


def _leg_label(index: int, count: int, is_round_trip: bool) -> str:
    if is_round_trip:
        return "Outbound" if index == 0 else "Return"
    if count == 1:
        return "Flight"
    return f"Leg {index + 1}"


def _key_value_table(rows: List[List[str]]) -> Table:
    table = Table(rows, colWidths=[50 * mm, 120 * mm])
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("TEXTCOLOR", (0, 0), (0, -1), colors.HexColor("#444444")),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    return table


def _flight_rows(booking: Booking) -> List[List[str]]:
    flights = booking.itinerary.get("flights") or []
    cabin = CABIN_NAMES.get(booking.itinerary.get("cabinClass") or "", booking.itinerary.get("cabinClass") or "-")
    is_round_trip = len(flights) == 2 and booking.meta.get("flight", {}).get("tripType", "R") == "R"
    rows = [["", "Airline", "Flight", "From - To", "Departure", "Arrival", "Date", "Class", "Duration"]]
    for index, flight in enumerate(flights):
        for segment in flight.get("segments") or []:
            rows.append([
                _leg_label(index, len(flights), is_round_trip),
                segment.get("airlineName") or segment.get("airlineCode") or "-",
                f"{segment.get('airlineCode') or ''}{segment.get('flightNumber') or ''}",
                f"{segment.get('origin')} - {segment.get('destination')}",
                _fmt_datetime(segment.get("departureTime"), "%H:%M"),
                _fmt_datetime(segment.get("arrivalTime"), "%H:%M"),
                _fmt_datetime(segment.get("departureTime"), "%d %b %Y"),
                cabin,
                _duration(segment.get("duration")),
            ])
    return rows


def render_voucher(booking: Booking, settings: Settings) -> bytes:
    """
    Render a booking voucher as PDF bytes

    Raises:
        BookingFlowError: If the booking is not paid or confirmed
    """
    if not booking.is_voucher_ready:
        raise BookingFlowError("Voucher is available once the booking is paid")

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=f"Voucher {booking.id}",
        author=settings.app_name,
    )
    styles = getSampleStyleSheet()
    heading = ParagraphStyle("VoucherHeading", parent=styles["Heading1"], textColor=BRAND_COLOR)
    section = ParagraphStyle("VoucherSection", parent=styles["Heading3"], textColor=BRAND_COLOR, spaceBefore=8)
    body = styles["BodyText"]

    is_flight = booking.type == BookingType.FLIGHT
    story: List[Any] = [
        Paragraph("iHoliday", heading),
        Paragraph("E-Ticket" if is_flight else "Hotel Voucher", styles["Heading2"]),
        Spacer(1, 4 * mm),
    ]

    summary = [
        ["Booking Reference", booking.id],
        ["Booked On", booking.created_at.strftime("%d %b %Y")],
        ["Status", booking.status.value.replace("_", " ").title()],
    ]
    if is_flight:
        summary.append(["PNR", booking.pnr or "-"])
    else:
        summary.append(["Confirmation No.", booking.confirmation_no or "-"])
    story.append(_key_value_table(summary))

    story.append(Paragraph("Lead Traveller" if is_flight else "Guest", section))
    story.append(_key_value_table([
        ["Name", booking.lead_name or "-"],
        ["Email", booking.contact_email or "-"],
        ["Phone", booking.contact_phone or "-"],
    ]))

    if is_flight:
        story.append(Paragraph("Flight Details", section))
        table = Table(_flight_rows(booking), repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), BRAND_COLOR),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#CCCCCC")),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]))
        story.append(table)
        passengers = [
            [f"{t.get('title', '')} {t.get('firstName', '')} {t.get('lastName', '')}".strip(), t.get("type", "ADT")]
            for t in booking.travelers
        ]
        if passengers:
            story.append(Paragraph("Passengers", section))
            story.append(_key_value_table(passengers))
        notes = FLIGHT_NOTES
    else:
        itinerary = booking.itinerary
        story.append(Paragraph("Stay Details", section))
        story.append(_key_value_table([
            ["Hotel", itinerary.get("hotelName") or "-"],
            ["Address", itinerary.get("address") or "-"],
            ["City", itinerary.get("cityName") or "-"],
            ["Check-in", itinerary.get("checkIn") or "-"],
            ["Check-out", itinerary.get("checkOut") or "-"],
            ["Nights", str(itinerary.get("nights") or "-")],
            ["Rooms", str(itinerary.get("rooms") or "-")],
            ["Room Type", itinerary.get("roomTypeName") or "-"],
            ["Guests", str(len(booking.travelers))],
        ]))
        if itinerary.get("cancellationPolicy"):
            story.append(Paragraph(f"Cancellation policy: {itinerary['cancellationPolicy']}", body))
        notes = HOTEL_NOTES

    story.append(Paragraph("Payment", section))
    story.append(_key_value_table([["Total Paid", _money(booking.total_price, booking.currency)]]))

    story.append(Paragraph("Important Information", section))
    for note in notes:
        story.append(Paragraph(f"&bull; {note}", body))

    story.append(Spacer(1, 6 * mm))
    story.append(Paragraph(f"Need help? {settings.support_phone} | {settings.support_email}", body))

    doc.build(story)
    pdf = buffer.getvalue()
    logger.info("Rendered %s voucher for booking %s (%d bytes)", booking.type.value, booking.id, len(pdf))
    return pdf


def voucher_metadata(booking: Booking) -> Dict[str, Any]:
    return {
        "bookingId": booking.id,
        "type": booking.type.value,
        "reference": booking.pnr if booking.type == BookingType.FLIGHT else booking.confirmation_no,
        "status": booking.status.value,
        "ready": booking.is_voucher_ready,
        "downloadUrl": f"/api/v1/vouchers/{booking.id}/download",
    }
