"""Configuration loading: YAML app settings, AI settings and the rules file."""
