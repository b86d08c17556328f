"""Console output and error presentation."""
