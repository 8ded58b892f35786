"""Bookshare - Client Package

API client and feed reconciliation used by the terminal front-end.
"""

from bookshare.client.api_client import BookshareClient, ClientError
from bookshare.client.feed import FeedController, FeedReconciler, FeedResult, FeedState, reduce_page

__all__ = [
    "BookshareClient",
    "ClientError",
    "FeedController",
    "FeedReconciler",
    "FeedResult",
    "FeedState",
    "reduce_page",
]
