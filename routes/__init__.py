"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.price_lists import router as price_lists_router
from routes.parser_templates import router as parser_templates_router

__all__ = [
    "price_lists_router",
    "parser_templates_router",
]
