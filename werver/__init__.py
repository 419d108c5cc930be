"""A small threaded HTTP server with prefix routing and templated pages, plus dice rolls."""

__version__ = "0.1.0"
__all__ = ["dice_roll", "http_server", "thread_pool"]