"""Constants used throughout sprig.

This module defines the attribute names the declarative markers stamp onto
classes and functions, the package logger, and the sharing policy names.
"""

import logging

LOGGER_NAME: str = "sprig"
"""Default logger name for the sprig container."""

LOGGER: logging.Logger = logging.getLogger(LOGGER_NAME)
"""Package logger for container-level diagnostics."""

SPRIG_COMPONENT: str = "_sprig_component"
"""Attribute holding the component marker metadata dict (name, scope, lazy)."""

SPRIG_ASPECT: str = "_sprig_aspect"
"""Attribute flag set on classes that provide advice."""

SPRIG_ADVICE: str = "_sprig_advice"
"""Attribute holding the list of advice markers on a function."""

SPRIG_AUTOWIRED: str = "_sprig_autowired"
"""Attribute holding the setter-injection metadata dict on a method."""

SPRIG_LIFECYCLE: str = "_sprig_lifecycle"
"""Attribute holding the lifecycle role (``'post_construct'`` / ``'pre_destroy'``)."""

SCOPE_SHARED: str = "shared"
"""One instance per container lifetime."""

SCOPE_PER_REQUEST: str = "per_request"
"""A new instance on every resolution."""

SCOPE_ALIASES = {
    "shared": SCOPE_SHARED,
    "singleton": SCOPE_SHARED,
    "per_request": SCOPE_PER_REQUEST,
    "prototype": SCOPE_PER_REQUEST,
}
