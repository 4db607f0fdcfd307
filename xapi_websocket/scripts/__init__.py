"""Command line programs built on the xAPI client."""
