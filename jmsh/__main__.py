"""
Entry point for python -m jmsh
"""

from .cli import main

if __name__ == "__main__":
    main()
