"""
The cost source store.
"""

from .cost_store import CostSourceStore
