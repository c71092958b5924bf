"""Configuration package (Flask settings and Celery config)."""
