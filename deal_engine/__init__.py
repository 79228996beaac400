"""
ROOFING DEAL ENGINE
Deal lifecycle and commission allocation
"""

from .models import Commission, Deal
from .processor import DealProcessor
from .service import DealService
from .statuses import describe

__all__ = ['DealProcessor', 'DealService', 'Deal', 'Commission', 'describe']
