"""
Client-side sync: polls the event feed and keeps a durable local view.
"""

__all__: list[str] = []
