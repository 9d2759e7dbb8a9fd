"""Marker checks against the reference genome."""
