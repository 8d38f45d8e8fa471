"""Event Attendance package.

Check-in / check-out tracking for event registrations, organized by feature
modules (registrations, events, attendance, reports, ...) with a thin Flask
controller layer over service and repository layers.
"""

__version__ = "1.0.0"
