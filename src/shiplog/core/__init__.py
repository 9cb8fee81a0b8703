"""Core buffering, coordination and configuration for shiplog."""
