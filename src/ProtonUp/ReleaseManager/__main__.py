"""Allow ``python -m ProtonUp.ReleaseManager`` to run the ``pup`` CLI."""

from .cli import run

if __name__ == "__main__":
    run()
