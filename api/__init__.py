"""
HTTP API for the community feed aggregator.
"""

__version__ = "1.0.0"
