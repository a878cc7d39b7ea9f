# artisan/app/runner/__main__.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""CLI entrypoint for a runner process.

Usage:
    python -m artisan.app.runner <character> --cycle gather --preset copper_ore

See artisan.app.runner.utils for all options.
"""

from .utils import main

if __name__ == "__main__":
    main()
