"""
Entry point for running Envii as a module.

Usage:
    python -m envii [command] [options]

This allows Envii to be executed directly as a Python module,
which is useful for development and testing without installing
the package.
"""

from envii.cli import main

if __name__ == "__main__":
    main()
