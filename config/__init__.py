"""Configuration layer - environment-driven settings."""
