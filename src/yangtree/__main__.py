"""Module entrypoint for `python -m yangtree`.

Delegates to the CLI implementation.
"""

from .cli import main


if __name__ == "__main__":
    main()
