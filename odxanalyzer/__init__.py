"""Orchestration model builder and migration gap analyzer"""

__version__ = "1.0.0"
