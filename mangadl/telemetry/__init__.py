"""Telemetry and observability helpers.

This package emits run events and tracks transfer counters for reporting.
"""

from .logger import RunLogger
from .transfer_tracker import TransferTracker

__all__ = ["RunLogger", "TransferTracker"]
