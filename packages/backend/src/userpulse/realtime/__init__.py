"""Real-time infrastructure — fan-out hub + server-sent events.

Learn: Events flow through two stages here:
1. Consumer → hub.broadcast() (one call per broker message)
2. Hub → every subscriber's queue → SSE response → browser

The hub lives in-process, so every API worker has its own registry and
its own consumer.
"""
