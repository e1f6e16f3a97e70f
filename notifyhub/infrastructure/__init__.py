"""Infrastructure adapters: database, repositories and live channels."""
