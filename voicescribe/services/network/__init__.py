"""
Network module - connectivity monitoring.
"""

from .monitor import NetworkMonitor

__all__ = ["NetworkMonitor"]
