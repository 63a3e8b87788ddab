"""remote-emulator - attach a remote Android device to the local adb server."""

__version__ = "0.1.0"
__logo__ = "📱"
