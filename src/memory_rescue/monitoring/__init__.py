"""
Monitoring subsystem for the rescue engine.
"""

from memory_rescue.monitoring.rescue_metrics import RescueMetricsSink

__all__ = ["RescueMetricsSink"]
