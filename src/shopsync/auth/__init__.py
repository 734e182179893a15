"""Owner authentication: JWT tokens and password hashing."""
