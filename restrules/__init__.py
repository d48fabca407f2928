"""
restrules: REST API core enforcing resource naming, status codes,
versioning, pagination and hypermedia conventions
"""

from .version import __version__
