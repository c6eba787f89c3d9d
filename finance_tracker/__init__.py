"""Finance Tracker package."""

__all__ = [
    "config",
    "errors",
    "render",
    "suggest",
    "analytics",
    "reports",
    "data_loader",
    "models",
    "store",
    "webapp",
]

__version__ = "0.1.0"
