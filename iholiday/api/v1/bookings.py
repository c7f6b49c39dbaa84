"""
Booking and voucher endpoints
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from iholiday.core.config import Settings, get_settings
from iholiday.core.errors import BookingFlowError
from iholiday.core.responses import success
from iholiday.models.request import VoucherGenerateRequest
from iholiday.services.store import BookingStore, get_store
from iholiday.services.voucher import render_voucher, voucher_metadata

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Bookings"])


@router.get("/bookings/{booking_id}", summary="Get a booking")
async def get_booking(
    booking_id: str,
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    return success(store.get_booking(booking_id).to_public())


@router.post("/vouchers/generate", summary="Voucher metadata for a paid booking")
async def generate_voucher(
    request: VoucherGenerateRequest,
    store: BookingStore = Depends(get_store),
) -> Dict[str, Any]:
    booking = store.get_booking(request.booking_id)
    if not booking.is_voucher_ready:
        raise BookingFlowError("Voucher is available once the booking is paid")
    return success(voucher_metadata(booking))


@router.get("/vouchers/{booking_id}/download", summary="Download the PDF voucher")
async def download_voucher(
    booking_id: str,
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Response:
    booking = store.get_booking(booking_id)
    pdf = render_voucher(booking, settings)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="iholiday-voucher-{booking.id}.pdf"'},
    )
