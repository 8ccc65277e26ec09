"""Echo servers, clients, a resolver, ID generators and concurrency helpers for TCP networking."""

__version__ = "1.0.0"