"""
Core services - configuration, errors, boundary schemas, indexing and search.
"""
