"""App users."""
