"""Convergence engine for cluster load balancers and their access rules."""

__version__ = "0.1.0"
