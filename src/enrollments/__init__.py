"""Enrollment ledger: who is enrolled in what, and how far they got."""
