"""
Deploy run coordination and the service surface around it.
"""

from .coordinator import DeployCoordinator
from .service import DeploymentService, PrerequisiteCheck

__all__ = ['DeployCoordinator', 'DeploymentService', 'PrerequisiteCheck']
