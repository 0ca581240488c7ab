"""
AI Cost Tracker.

Tracks recurring and one-time AI spending and reconciles it with usage
reported by model providers.
"""

__version__ = "0.1.0"
