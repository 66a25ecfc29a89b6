"""Core module for the awardpicks package."""
