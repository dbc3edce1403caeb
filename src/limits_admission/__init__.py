"""Kubernetes validating admission controller enforcing resource ceilings."""

__version__ = "0.1.0"
