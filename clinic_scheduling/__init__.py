"""Clinic appointment scheduling: availability, booking, lifecycle and fees."""
