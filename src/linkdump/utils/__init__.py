# ABOUTME: Cross-cutting utilities and shared infrastructure
# ABOUTME: Supporting services: logging, file discovery, console tables

"""
Utils Layer: Shared infrastructure and cross-cutting concerns

This layer provides:
- Logging configuration and structured loggers
- Markdown file discovery for the command line
- Rich table helpers for console output

Data Flow: Supporting services for all other layers
"""

from . import logging

__all__ = [
    "logging",
]
