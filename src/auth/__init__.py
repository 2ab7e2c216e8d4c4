"""Accounts, sessions and the authenticated caller."""
