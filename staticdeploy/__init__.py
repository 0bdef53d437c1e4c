"""
staticdeploy - mirror a live content site into a static tree and publish it via git.
"""

__version__ = "0.3.0"
