"""Portal core — address derivation, request validation, registry, history."""
