"""Building blocks for tunnelling IPv4 over DNS: DNS headers, user table, tun devices."""

__version__ = "0.1.0"
__all__ = ["protocol", "users", "util", "tun"]