"""
Domain errors raised by the booking flow and mapped to HTTP responses in main
"""


class BookingFlowError(Exception):
    """A booking wizard or workflow rule was violated (HTTP 409)"""
    status_code = 409


class NotFoundError(Exception):
    """Booking, session or prebook does not exist (HTTP 404)"""
    status_code = 404


class ExpiredError(Exception):
    """Session or prebook is past its validity window (HTTP 410)"""
    status_code = 410
