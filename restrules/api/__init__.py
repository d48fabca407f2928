"""
restrules REST API package

Use ``restrules.api:api.app`` as application for ``uvicorn``.
"""

from .api import api, create_app
