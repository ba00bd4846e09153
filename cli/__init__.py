"""Paperlib command-line interface."""
