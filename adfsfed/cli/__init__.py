"""Command line interface for adfsfed."""
