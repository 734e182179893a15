"""Commerce provider clients."""
