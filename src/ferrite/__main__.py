"""
Entry point for running Ferrite as a module.

This allows users to run the CLI using:
    python -m ferrite [command] [options]
"""

from ferrite.cli.app import main

if __name__ == "__main__":
    main()
