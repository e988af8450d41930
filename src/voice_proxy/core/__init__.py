"""
Core Infrastructure for voice-proxy.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: Error codes and the exception hierarchy
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
    - resources.py: Process memory snapshots
"""
