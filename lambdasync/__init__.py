"""Reconcile declared serverless functions with the hosting platform."""

__version__ = "0.1.0"
