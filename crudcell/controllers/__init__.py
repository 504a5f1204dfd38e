"""
Controllers module: the Flask adapter over ControllerService.
"""

# Expose these at the module level
from .crud_controller import Method, CrudController, register_crud_routes
