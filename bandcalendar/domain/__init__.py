"""Scheduling domain: recurrence, series lifecycle, candidate dates and availability."""
