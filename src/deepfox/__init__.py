"""
Deep Fox - conversational appointment booking for a consultancy.
"""

__version__ = "0.1.0"
