from .base import VersionControl
from .git_cli import GitCli
from .reconciler import GitReconciler, build_change_summary

__all__ = ['VersionControl', 'GitCli', 'GitReconciler', 'build_change_summary']
