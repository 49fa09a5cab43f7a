"""
HTTP API for generating and editing towns.
"""
