"""
YAML configuration loading.
"""
