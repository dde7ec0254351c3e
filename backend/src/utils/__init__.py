"""
Utility modules for the practice portal application.

This package contains shared utility functions and helpers used across
the application: UTC datetime helpers and the store retry decorator.
"""

from utils.datetime_utils import utc_now, ensure_utc

__all__ = ['utc_now', 'ensure_utc']
