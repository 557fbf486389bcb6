# -*- coding: utf-8 -*-
"""Console script entry point for Formular."""

import sys
from pathlib import Path


def bot() -> None:
    """Run the Formular Discord bot."""
    # Formular/ must be on sys.path so internal imports (models, utils, modules) resolve.
    formular_dir = str(Path(__file__).resolve().parent / "Formular")
    if formular_dir not in sys.path:
        sys.path.insert(0, formular_dir)

    from bot import app

    app()


if __name__ == "__main__":
    bot()
