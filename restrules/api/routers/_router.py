"""
restrules shared router instance collecting all path operations
"""

from fastapi import APIRouter


router = APIRouter()
