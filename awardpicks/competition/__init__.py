"""Competitions, their participants and votes."""
