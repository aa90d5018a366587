"""Utility functions."""

from dentbook.utils.time import clinic_today, format_long_date, parse_date, utc_now

__all__ = ["utc_now", "clinic_today", "format_long_date", "parse_date"]
