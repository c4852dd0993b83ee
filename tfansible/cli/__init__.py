"""Typer command-line interface for tfansible."""
