"""Application layer: the notification engine and its use cases."""
