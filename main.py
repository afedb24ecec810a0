"""Thin entry point. Delegates to cli.main."""

from cli.main import main


if __name__ == "__main__":
    main()
