"""Taskflow: task lifecycle engine with an eventually-consistent analytics projection."""

__version__ = "1.0.0"
