"""Building blocks for stateless compute servers: request and encrypted state handling, events, worker pools, metrics and logging."""

__version__ = "0.1.0"

__all__ = [
    "events",
    "helpers",
    "logs",
    "metrics",
    "pools",
    "requests",
    "states",
    "workers",
]