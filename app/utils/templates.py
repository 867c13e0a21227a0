# app/utils/templates.py
"""
Jinja2 rendering for customer-facing HTML: the unsubscribe pages (served
through `pages`) and the stage-update / rejection email bodies.
Templates live in app/templates and are autoescaped.
"""

from pathlib import Path
from fastapi.templating import Jinja2Templates
from jinja2 import Environment, FileSystemLoader
from app.config import settings

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

BRAND = {
    "dealer_name": settings.DEALER_NAME,
    "dealer_phone": settings.DEALER_PHONE,
    "dealer_address": settings.DEALER_ADDRESS,
    "gold": "#C9A84C",
}

pages = Jinja2Templates(directory=TEMPLATES_DIR)
pages.env.globals.update(BRAND)

email_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=True,
)
email_env.globals.update(BRAND)


def render_email(template_name: str, **context) -> str:
    return email_env.get_template(template_name).render(**context)
