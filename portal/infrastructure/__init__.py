"""Infrastructure adapters: database, transport and security."""
