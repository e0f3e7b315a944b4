"""
voicedash: call-execution event aggregator for the voice campaign dashboard.
"""

__version__ = "0.1.0"
