"""Command-line entrypoints for serving the API and delivering scheduler ticks."""
