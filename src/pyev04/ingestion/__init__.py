"""Ingestion layer.

This package contains feeds that produce device updates (seeded demo
feed, MQTT) and the subscription that hands them to the registry.
"""

__all__: list[str] = []
