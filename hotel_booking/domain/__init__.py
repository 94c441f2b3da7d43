"""Pure booking domain logic (no I/O)."""
