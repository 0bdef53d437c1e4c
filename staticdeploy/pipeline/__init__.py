"""
Mirror pipeline: crawl plus the ordered rewrite and cleanup passes.
"""

from .base import MirrorPipeline, MirrorStage, MirrorContext, StageResult
from .stages import build_mirror_stages

__all__ = ['MirrorPipeline', 'MirrorStage', 'MirrorContext', 'StageResult', 'build_mirror_stages']
