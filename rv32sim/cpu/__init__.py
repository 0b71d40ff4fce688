"""Register file, decoder and execution unit."""
