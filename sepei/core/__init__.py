"""Core configuration, security and helpers."""
