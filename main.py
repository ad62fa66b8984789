"""Process entry point: 'gunicorn main:app'.

Refuses to boot when the initial redirects file could not be loaded, so a
broken configuration never reaches production.
"""
from app import app
from redirect_store import STATE_SERVING, redirect_store
from redirects import InitializationError

if redirect_store.state != STATE_SERVING:
    raise InitializationError(f"could not load redirects from {app.config['REDIRECTS_FILE']}")
