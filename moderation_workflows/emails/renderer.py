from __future__ import annotations

from pathlib import Path
from typing import Optional

import structlog
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from ..models import RenderedTemplate, TemplateType

logger = structlog.get_logger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

SUBJECTS: dict[str, str] = {
    "Compliant": "Your account has been restored",
    "Suspended": "Your account has been suspended",
    "Banned": "Your account has been banned",
}


class TemplateRenderer:
    def __init__(self, template_dir: Path = TEMPLATE_DIR) -> None:
        self._env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    async def render(
        self,
        *,
        organization_id: str,
        template: TemplateType,
        appeal_url: Optional[str] = None,
    ) -> RenderedTemplate:
        if template not in SUBJECTS:
            raise ValueError(f"Unknown email template: {template}")
        name = template.lower()
        context = {
            "organization_id": organization_id,
            "appeal_url": appeal_url,
            "subject": SUBJECTS[template],
        }
        html = self._env.get_template(f"{name}.html").render(**context)
        body = self._env.get_template(f"{name}.txt").render(**context)
        logger.debug("email_template_rendered", template=template, has_appeal_url=appeal_url is not None)
        return RenderedTemplate(subject=SUBJECTS[template], html=html, body=body.strip())
