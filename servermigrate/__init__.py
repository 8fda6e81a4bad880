"""Server-state migration engine"""

__version__ = "0.1.0"
