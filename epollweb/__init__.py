"""Event-driven HTTP file server with a worker thread pool and connection timers."""

__version__ = "0.4.0"