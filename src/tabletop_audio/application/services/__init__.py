"""Application services orchestrating the library and session sync."""
