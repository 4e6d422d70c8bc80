"""Typer command modules, one per command group."""
