"""Timing, lifecycle events and traces."""
