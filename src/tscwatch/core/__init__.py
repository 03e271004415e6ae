"""
Core state machine for tscwatch.

Turns classified compiler output into lifecycle events and hook restarts.
"""

from tscwatch.core.state import CompilationTracker, TrackerStep, WatcherState

__all__ = ["CompilationTracker", "TrackerStep", "WatcherState"]
