"""Aura emotional journaling core."""
