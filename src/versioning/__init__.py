"""Maven version resolution."""
