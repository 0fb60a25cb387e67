from __future__ import annotations

import pytest

from moderation_workflows.emails.renderer import SUBJECTS, TemplateRenderer


@pytest.mark.asyncio
@pytest.mark.parametrize("template", ["Compliant", "Suspended", "Banned"])
async def test_each_template_renders_html_and_text(template) -> None:
    rendered = await TemplateRenderer().render(organization_id="org_1", template=template)

    assert rendered.subject == SUBJECTS[template]
    assert rendered.subject in rendered.html
    assert rendered.body
    assert "<" not in rendered.body


@pytest.mark.asyncio
async def test_appeal_link_is_escaped_in_html() -> None:
    url = "https://moderation.example.com/appeal?token=a&b=<c>"

    rendered = await TemplateRenderer().render(organization_id="org_1", template="Suspended", appeal_url=url)

    assert url in rendered.body
    assert "token=a&amp;b=&lt;c&gt;" in rendered.html


@pytest.mark.asyncio
async def test_unknown_template_is_rejected() -> None:
    with pytest.raises(ValueError):
        await TemplateRenderer().render(organization_id="org_1", template="Warned")
