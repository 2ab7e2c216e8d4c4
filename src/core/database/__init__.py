"""Cassandra connection management."""
