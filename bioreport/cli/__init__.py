"""
Command line interface

This module provides the CLI functionality for bioreport.
"""

from .main import main, create_parser

__all__ = ['main', 'create_parser']
