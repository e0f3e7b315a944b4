"""
Daily, weekly and monthly call summaries over provider call records.
"""

__all__: list[str] = []
