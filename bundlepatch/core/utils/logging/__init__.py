from .logging import ConsoleLog

__all__ = ["ConsoleLog"]
