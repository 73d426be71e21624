"""Configuration: settings, TOML store, logging."""
