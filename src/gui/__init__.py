"""GUI module for the tile viewer (PySide6)."""
