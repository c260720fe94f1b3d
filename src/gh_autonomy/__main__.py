"""
Entry point for running gh_autonomy as a module.

Allows running the GitHub tools server via:
    python -m gh_autonomy
    uv run python -m gh_autonomy
"""

from gh_autonomy.server import main

if __name__ == "__main__":
    main()
