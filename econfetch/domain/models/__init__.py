"""Domain value objects and data structures."""
