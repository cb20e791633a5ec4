"""Allow ``python -m stratum``."""

from stratum.cli.main import main

if __name__ == "__main__":
    main()
