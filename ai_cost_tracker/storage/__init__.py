"""
Persistence: data models, SQLite key-value storage and the repository.
"""
