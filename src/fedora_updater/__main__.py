"""fedora-updater entry point.

Supports: python -m fedora_updater
"""

from .app import main

if __name__ == "__main__":
    main()
