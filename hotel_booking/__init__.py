"""Hotel booking marketplace backend."""
