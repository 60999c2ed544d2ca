"""
AimCoach CLI Entry Point

Allows running the package as a module: python -m aimcoach
"""

from aimcoach.cli import main

if __name__ == "__main__":
    main()
