"""
Shared infrastructure: configuration, logging, errors, types and text helpers.
"""
