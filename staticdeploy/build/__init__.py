"""
Change detection, planning and run bookkeeping.
"""

from .lock import RunLock
from .watermark import WatermarkStore
from .change_detector import ChangeDetector
from .planner import BuildPlanner

__all__ = ['RunLock', 'WatermarkStore', 'ChangeDetector', 'BuildPlanner']
