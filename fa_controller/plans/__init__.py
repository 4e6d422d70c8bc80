"""Playbook builders, one module per command family."""
