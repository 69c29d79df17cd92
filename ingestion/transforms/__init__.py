"""Pure transforms from provider rows to canonical bars."""
