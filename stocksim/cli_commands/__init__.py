"""Typer command groups for the StockSim CLI."""
