"""btc-portal — Bitcoin shielding-address registration and deposit history."""

__version__ = "0.1.0"
