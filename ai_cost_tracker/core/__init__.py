"""
Core modules for AI Cost Tracker.

This package contains the stateless cost calculations, pricing, currency
helpers and input validation.
"""
