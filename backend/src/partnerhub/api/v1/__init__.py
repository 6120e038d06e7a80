"""Routers mounted by ``partnerhub.api.main``."""
