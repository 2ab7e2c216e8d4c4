"""E-learning marketplace API."""
