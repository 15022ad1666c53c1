"""Entry point for python -m flashdeck."""

from .cli import main

if __name__ == "__main__":
    main()
