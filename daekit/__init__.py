"""Traffic sniffing, routing rules and outbound dialer selection."""

__version__ = "0.1.0"