"""Build precompiled, extension-free Ruby gems inside disposable Docker containers."""

__version__ = "0.1.0"

__all__ = ["__version__"]
