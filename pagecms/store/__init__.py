"""Document store client."""
