"""Entry point for `python -m remote_emulator`."""

from remote_emulator.cli.commands import app

if __name__ == "__main__":
    app()
