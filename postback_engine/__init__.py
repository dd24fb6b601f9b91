"""
POSTBACK COMMISSION ENGINE
Resolves partner postbacks to affiliates and computes the commission owed.
"""

from .models import CommissionResult, PostbackEvent
from .processor import PostbackProcessor
from .storage import InMemoryStore

__all__ = ['PostbackProcessor', 'PostbackEvent', 'CommissionResult', 'InMemoryStore']
