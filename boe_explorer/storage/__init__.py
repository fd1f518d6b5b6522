"""Persistence: TTL fetch cache and day-partitioned JSON stores."""
