"""
                Food Ordering Backend

Async FastAPI backend for restaurant browsing, single-restaurant carts
and hosted-checkout orders, with hybrid Mock/Real service architecture.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
