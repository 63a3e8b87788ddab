"""CLI module for remote-emulator."""
