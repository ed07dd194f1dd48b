"""
Address helpers shared by the send and query services.
"""

import re

# Structural check only (local@domain.tld), not RFC 5322.
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(address) -> bool:
    """Return True if address looks like local@domain.tld."""
    if not isinstance(address, str):
        return False
    return _EMAIL_RE.fullmatch(address) is not None


def get_domain(address: str) -> str:
    """
    Return the part of an address after the last '@'.

    Raises ValueError when there is no '@' at all, so a broken sender
    address cannot silently become a credential-map key.
    """
    local, sep, domain = address.rpartition("@")
    if not sep or not domain:
        raise ValueError(f"Address has no domain part: {address!r}")
    return domain
