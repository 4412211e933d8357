"""Core business logic — models, screening, scoring, and the backend client.

This module is framework-agnostic. The evaluator functions in ``scoring``
and ``evaluation`` are pure and never touch the network; only
``clients.investool`` performs I/O.
"""
