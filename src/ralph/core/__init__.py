"""Core business logic for ralph, independent of the CLI."""
