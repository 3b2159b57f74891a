"""Supervisor for pools of long-running CLI coding agents."""

__version__ = "0.3.0"
