"""
Skepsis Market Cache

Multi-tier read-through cache and optimized read service for
prediction-market state stored on the Sui ledger.
"""

__version__ = "1.0.0"
