"""Evaluation console: proxy service and command-line console."""
