"""Text measurement and display formatting helpers."""
