"""
SmallBasket Location Tracker

Adaptive-interval background location polling with a bounded pending
queue and opportunistic sync to the SmallBasket backend.
"""

__version__ = "1.0.0"
