"""Data memory and program image."""
