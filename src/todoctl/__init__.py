"""todoctl: task manager CLI with a plugin and marketplace system."""

__version__ = "0.4.0"
