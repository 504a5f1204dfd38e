"""
Services module for the versioned document lifecycle.

This module provides functionality for:
- Hook slots around every stage of an operation
- Compare-and-swap updates, replacements and (soft) deletions on `version`
- Authorizing and coercing client candidates before they reach the store
"""

# Expose these at the module level
from .hooks import Hooks
from .application_service import ApplicationService
from .controller_service import ControllerService
