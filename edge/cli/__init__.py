"""Edge command-line interface."""
