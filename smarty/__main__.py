"""Allow ``python -m smarty``."""

from .cli import main

if __name__ == "__main__":
    main()
