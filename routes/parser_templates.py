"""
Parser template API routes.

Mounted at /api/parser-templates. An unknown template id raises
ParserTemplateNotFoundError, answered as 404 by the app error handler.
"""

from fastapi import APIRouter

from models.parse_config import ParserTemplate
from parsers.templates import get_parser_template, list_parser_templates

router = APIRouter()


@router.get("", response_model=list[ParserTemplate])
async def list_templates():
    """All built-in parser templates."""
    return list_parser_templates()


@router.get("/{template_id}", response_model=ParserTemplate)
async def get_template(template_id: str):
    return get_parser_template(template_id)
