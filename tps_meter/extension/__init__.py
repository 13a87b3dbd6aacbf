"""
Host extension for TPS Meter.

Wires run lifecycle signals to the usage summary.
"""

from .tracker import DeliveryContext, RunTracker, Severity, register

__all__ = ["DeliveryContext", "RunTracker", "Severity", "register"]
