"""Slot reservation core for the barbershop booking marketplace."""

__version__ = "0.3.0"
