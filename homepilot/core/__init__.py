"""Core settings and error taxonomy."""
