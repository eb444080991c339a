"""
API v1 routers.
"""

from product_house.api.v1 import comments, completion, conversations, health, masterplans

__all__ = ["comments", "completion", "conversations", "health", "masterplans"]
