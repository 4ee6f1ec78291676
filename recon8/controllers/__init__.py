"""
Concrete controllers
"""

# Local
from .cabundle_injector import (
    AnnotationInjectionController,
    ConfigMapCABundleInjectionController,
)
from .operator_status import OperatorStatusController, sync_status
