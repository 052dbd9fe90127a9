"""CLI entry point for running icmptrace as a module."""

from .main import run


def main() -> None:
    try:
        raise SystemExit(run())
    except KeyboardInterrupt:
        raise SystemExit(130)


if __name__ == "__main__":
    main()
