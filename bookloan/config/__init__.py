"""Environment-backed settings for the loan server and client."""
