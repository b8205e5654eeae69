"""Configuration package; import ``settings`` from ``medportal.core.config.settings``."""
