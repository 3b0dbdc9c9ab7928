"""
API Routes Package
"""
from . import auth, health
