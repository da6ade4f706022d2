"""
Appointment Booking Service

A FastAPI backend for booking, rescheduling and cancelling appointments
against administrator-managed time slots, with row-locked reservation
transactions that prevent double booking.
"""

__version__ = "1.0.0"
