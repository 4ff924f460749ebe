"""
Form handles for FormCreate/FormUpdate connections.
"""

from .handle import (
    FORM_ERROR_KEY,
    FormHandle,
    FormSubmission,
    MapForm,
    ModelForm,
    errors_from_validation,
)

__all__ = [
    "FORM_ERROR_KEY",
    "FormHandle",
    "FormSubmission",
    "MapForm",
    "ModelForm",
    "errors_from_validation",
]
