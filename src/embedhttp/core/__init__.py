"""
Transport layer: listening socket, connections and exchanges.

    SocketServer  - Accept loop, route table, executor dispatch, stop()
    Connection    - Buffered I/O on one accepted client socket
    Exchange      - One request/response interaction handed to routes
    Route         - Path + callback + optional authenticator
"""

from .connection import Connection, ConnectionState, RequestTooLarge
from .exchange import Exchange
from .socket_server import Route, SocketServer

__all__ = [
    "Connection",
    "ConnectionState",
    "Exchange",
    "RequestTooLarge",
    "Route",
    "SocketServer",
]
