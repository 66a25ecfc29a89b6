"""Ceremonies, their categories and the event type reference table."""
