"""Turn-based narrative multiplayer session engine"""

__version__ = "0.1.0"
