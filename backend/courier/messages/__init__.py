"""Message module.

Stores messages and delivers them to live clients.

Services:
    - MessageStore: DuckDB persistence for messages.
    - DeliveryEngine: send/fetch with seen-state and real-time fanout.
"""
