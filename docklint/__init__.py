"""docklint: static best-practice checks for Dockerfiles."""

__version__ = "0.1.0"
