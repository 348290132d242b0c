"""Example issue file generation."""
