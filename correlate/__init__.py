"""
Correlate package: expose identity resolution of raw activity onto team members.
"""

from .resolver import resolve, correlate, RESOLUTION_RULES

__all__ = ["resolve", "correlate", "RESOLUTION_RULES"]
