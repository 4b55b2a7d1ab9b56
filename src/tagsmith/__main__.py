"""
Main entry point for running tagsmith as a module.
Allows: python -m tagsmith ...
"""
import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
