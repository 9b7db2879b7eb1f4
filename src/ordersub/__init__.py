"""ordersub - conversational ordering agent with subscription lifecycle."""

__version__ = "0.1.0"
