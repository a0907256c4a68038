"""
Live marketplace client: one WebSocket session keeping catalog, cart and
order mirrors in step with the server.
"""

from marketsync.client import MarketClient
from marketsync.connection import ConnectionManager
from marketsync.dispatcher import IntentDispatcher, NewItem
from marketsync.errors import (
    ConnectionLostError,
    MarketSyncError,
    NotConnectedError,
    ProtocolDecodeError,
    ServerError,
    ValidationError,
)
from marketsync.models import (
    CartLine,
    ConnectionState,
    Item,
    ListingType,
    Mirrors,
    Notification,
    Order,
    Session,
    Severity,
)
from marketsync.notifications import NotificationCenter
from marketsync.reconciler import Reaction, Reconciler, Refresh
from marketsync.rest import MarketApiClient, Product
from marketsync.session import AuthState, SessionAuthenticator

__all__ = [
    # Client
    "MarketClient",
    "ConnectionManager",
    "SessionAuthenticator",
    "AuthState",
    "IntentDispatcher",
    "NewItem",
    "Reconciler",
    "Reaction",
    "Refresh",
    "NotificationCenter",
    "MarketApiClient",
    "Product",
    # Models
    "CartLine",
    "ConnectionState",
    "Item",
    "ListingType",
    "Mirrors",
    "Notification",
    "Order",
    "Session",
    "Severity",
    # Errors
    "MarketSyncError",
    "NotConnectedError",
    "ProtocolDecodeError",
    "ValidationError",
    "ServerError",
    "ConnectionLostError",
]
