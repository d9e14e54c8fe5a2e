"""Command line interface for pocketledger."""
