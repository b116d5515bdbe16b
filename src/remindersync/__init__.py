"""Reminder sync scheduler.

Periodically signals a consuming application that a reminder sync is due,
outside a night-hours blackout window, through a durable pending-sync flag.
"""

__version__ = "1.0.0"
