"""Resource scheduling engine for studio bookings."""

__version__ = "0.1.0"
