"""
Main entry point for running taglite as a module.
Allows: python -m taglite ...
"""
import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
