"""Admin listings and reports."""
