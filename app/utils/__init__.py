"""Small shared helpers (crypto, error envelopes, parsing)."""
