"""HTTP API for the shielding portal."""
