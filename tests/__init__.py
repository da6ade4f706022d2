"""
Test suite for the Appointment Booking Service.

Contains service-level tests for the reservation transactions and API tests
for authentication, time slots and appointments.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
