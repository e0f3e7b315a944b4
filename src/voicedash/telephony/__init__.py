"""
Telephony provider boundary: call-detail records for summaries.

Keep package import side-effects to a minimum.
Do not import factory/adapters here.
"""

__all__ = [
    "interface",
    "config",
    "factory",
    "twilio_adapter",
    "mock_adapter",
]
