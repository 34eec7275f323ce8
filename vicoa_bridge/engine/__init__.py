"""Configuration, credentials and the exception hierarchy."""
