"""Command line entry points for modhost."""
