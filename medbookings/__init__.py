"""MedBookings: availability-to-slot scheduling with recurrence."""

__version__ = "0.1.0"
