"""
Validation for wasmbuild configuration documents.
"""

from wasmbuild.validation.schemas import (
    BUILD_CONFIG_SCHEMA,
    BUILD_CONFIG_VALIDATOR,
    SCHEMA_VERSION,
    config_errors,
    package_name_errors,
)

__all__ = [
    "BUILD_CONFIG_SCHEMA",
    "BUILD_CONFIG_VALIDATOR",
    "SCHEMA_VERSION",
    "config_errors",
    "package_name_errors",
]
