"""
Asset KPI engine.

Reconstructs asset state timelines from discrete events and derives
availability, stop, reliability and OEE figures per shift.
"""

__version__ = "1.0.0"
