"""
Integration tests for the checkoutflow library.

These tests run against a PostgreSQL container and are skipped when
testcontainers or Docker is unavailable.
"""
