"""Email templates: personal CRUD over the user's own templates plus read-only global ones."""

from .service import (
    GlobalTemplateError,
    TemplateAccessError,
    TemplateError,
    TemplateNotFoundError,
    create_template,
    delete_template,
    get_template,
    list_templates,
    load_template_seeds,
    seed_global_templates,
    serialize_template,
    update_template,
)

__all__ = [
    "GlobalTemplateError",
    "TemplateAccessError",
    "TemplateError",
    "TemplateNotFoundError",
    "create_template",
    "delete_template",
    "get_template",
    "list_templates",
    "load_template_seeds",
    "seed_global_templates",
    "serialize_template",
    "update_template",
]
__version__ = "0.1.0"
