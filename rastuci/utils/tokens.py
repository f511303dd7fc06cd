import secrets
import time


def make_pkey(length: int = 32) -> str:
    # URL-safe token for public order links
    return secrets.token_urlsafe(length)


def make_reference(prefix: str) -> str:
    """`tmp_1718000000000_k3j9x2` style references handed to external services."""
    return "{0}_{1}_{2}".format(prefix, int(time.time() * 1000), secrets.token_hex(3))
