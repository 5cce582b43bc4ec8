"""
Entry point for running the phpvm CLI as a module.

Usage: python -m phpvm.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
