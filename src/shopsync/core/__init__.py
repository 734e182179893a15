"""Transport-independent data structures."""
