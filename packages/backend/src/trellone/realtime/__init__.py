"""Real-time infrastructure — Redis pub/sub + WebSocket.

Learn: Events flow through two channels:
1. Services → Redis PUBLISH (backend-side broadcast, one channel per board)
2. Redis SUBSCRIBE → WebSocket → Frontend (real-time delivery)

This decouples event producers (services) from consumers (WebSocket clients).
Which sockets are open is tracked by an explicit ConnectionRegistry owned
by the gateway, never by module-level dicts scattered through handlers.
"""
