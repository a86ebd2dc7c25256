"""
Census Feeds

External sources of census state: roots, accounts and events.
"""
from .base import AccountFeed, EventFeed, RootSource
from .subgraph import SubgraphClient

__all__ = ["AccountFeed", "EventFeed", "RootSource", "SubgraphClient"]
