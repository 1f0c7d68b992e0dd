"""
Salons application.

Holds the salon and appointment records the billing engine reads and
drives: owner salons seed subscription usage counters, and appointment
payments move appointments between pending, booked and cancelled.

Usage:
    from salons.models import Appointment, AppointmentStatus, Salon
"""
