"""Crush Quest API."""
