"""
dcsstats CLI Entry Point

Allows running the package as a module: python -m dcsstats
"""

from dcsstats.cli import main

if __name__ == "__main__":
    main()
