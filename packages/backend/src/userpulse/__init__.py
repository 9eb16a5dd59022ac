"""userpulse — user management with live event notifications.

Users are stored in a relational database, looked up through a Redis
read-through cache, and every user creation (or failed creation) is
published to a Redis-backed exchange. A consumer fans those events out
to every browser connected to the server-sent events stream.
"""

__version__ = "0.1.0"
