"""
Entry point for running the phpvm CLI as a module.

Usage: python -m phpvm [command] [options]
"""

from phpvm.cli.parser import main

if __name__ == "__main__":
    main()
