"""Typer command-line application."""

from .app import app, main

__all__ = ["app", "main"]
