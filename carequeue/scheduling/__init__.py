"""Slot generation, queue projection and queue transition rules."""
