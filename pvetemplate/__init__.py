"""pve-template-builder package."""

__version__ = "1.0.0"

__all__ = [
    "builder",
    "cli",
    "config",
    "constants",
    "exceptions",
    "models",
    "preflight",
    "qm",
    "utils",
]
