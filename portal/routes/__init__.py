"""
Route blueprints for the Namhatta portal API.
"""

from .auth_routes import auth_bp
from .devotees import devotees_bp
from .senapoti import senapoti_bp

__all__ = ['auth_bp', 'devotees_bp', 'senapoti_bp']
