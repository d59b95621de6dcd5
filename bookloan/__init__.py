"""Library loan service: a FIFO-driven loan server and its requester client."""

__version__ = "1.0.0"
