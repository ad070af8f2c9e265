"""Scoring domain services: grid resolution, winner determination,
idempotent recording and round aggregation.

Kept free of HTTP and socket concerns so routes, the poll scheduler and
CLI commands all share one implementation.
"""
