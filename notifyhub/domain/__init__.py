"""Domain layer: entities and errors shared by every engine component."""
