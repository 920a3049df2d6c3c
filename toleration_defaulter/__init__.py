"""Default node-health tolerations for pods at admission time."""

__version__ = "0.1.0"
