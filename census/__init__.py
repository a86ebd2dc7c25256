"""Lean-IMT voting census reconstruction."""

__version__ = "0.1.0"
