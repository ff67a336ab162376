"""Year data derivation pipeline."""
