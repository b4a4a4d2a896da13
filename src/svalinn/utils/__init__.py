"""
Utility classes and functions for Svalinn.

General-purpose utilities that don't belong to a specific domain.
"""

import svalinn.utils.frozen as frozen
from svalinn.utils.frozen import FrozenMapping, FrozenSequence, freeze

__all__ = ["FrozenMapping", "FrozenSequence", "freeze", "frozen"]
