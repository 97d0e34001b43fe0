"""
License billing engine.

Prices license seat adjustments and billing cycles in USD and the
tenant's billing currency, and tracks payment attempts against them.
"""

__version__ = "1.0.0"
