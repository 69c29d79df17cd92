"""Price-history providers."""
