"""
Menu recommender.

Recommends menu items to a restaurant customer by blending four scoring
strategies computed over a FalkorDB property graph of users, orders and items.
"""

__version__ = "0.1.0"
