"""
ComplianceGuard: sanctions screening against multiple restricted-party lists.
"""

__version__ = "1.0.0"

from .config import Config
from .engine import ScreeningEngine
from .models import ScreeningRequest, ScreeningVerdict

__all__ = ['Config', 'ScreeningEngine', 'ScreeningRequest', 'ScreeningVerdict', '__version__']
