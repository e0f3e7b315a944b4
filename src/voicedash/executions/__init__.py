"""
Call-execution ingestion, storage and derived state.

NOTE:
Keep this __init__ lightweight. Importing the ORM model here would map it
as a side effect of importing the pure normalizer or reducer.
"""

__all__: list[str] = []
