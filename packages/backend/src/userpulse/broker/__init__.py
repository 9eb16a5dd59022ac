"""Broker layer — Redis Streams as a durable exchange with bound queues.

Learn: Events flow through the broker in three steps:
1. Publisher → looks up which queues are bound to the routing key
2. Publisher → XADD to each bound queue's stream (durable)
3. Consumer  → XREADGROUP per queue, XACK once the hub has broadcast

Unlike plain pub/sub (fire-and-forget), a stream entry stays pending in
the consumer group until it's acknowledged, so a crash between read and
ack means the entry is delivered again — at-least-once delivery.
"""
