"""Text chunking and content extraction."""
