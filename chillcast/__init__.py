"""Chillcast: beverage cooling times, forecast projections and ready timers."""

__version__ = "0.1.0"
