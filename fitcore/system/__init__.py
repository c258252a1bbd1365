"""Reference configurations and periodic cells."""

from .box import Box
from .configuration import VOIGT_PAIRS, Configuration, contributing_region

__all__ = ["Box", "Configuration", "VOIGT_PAIRS", "contributing_region"]
