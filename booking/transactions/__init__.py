"""
Transaction handlers.

- BookingTransaction: Create pending appointments (the only creation path)
"""

from booking.transactions.booking_transaction import BookingTransaction

__all__ = ["BookingTransaction"]
