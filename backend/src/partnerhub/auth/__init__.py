"""Accounts, credentials and session identity.

Import from the submodules directly (``partnerhub.auth.local``,
``partnerhub.auth.models``); the storage layer depends on the models, so
this package does not re-export the service.
"""
