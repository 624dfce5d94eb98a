"""Open Graph preview rendering.

Title and description come from small "magic variable" templates such as
``{file_size} · {owner_name}``; the result is placed into an autoescaped
Jinja2 document together with a client-side redirect.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape

from drive_backend.domain.errors import PreviewRenderError

_TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"
_OG_TEMPLATE_NAME = "share_og.html"

_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
    undefined=StrictUndefined,
)

_MAGIC_VAR_RE = re.compile(r"\{[^{}]+\}")
_OWNER_SEPARATOR_RE = re.compile(r"\s*·\s*·+\s*")
_SEPARATOR = "·"

OWNER_NAME_TOKEN = "{owner_name}"


@dataclass
class PreviewContext:
    site_name: str
    site_description: str = ""
    site_url: str = ""
    share_url: str = ""
    share_id: str = ""
    thumbnail_url: str = ""
    redirect_url: str = ""
    file_name: str = ""
    file_size: str = ""
    file_ext: str = ""
    folder_name: str = ""
    # Nickname only; never an email address or internal id.
    owner_name: str = ""
    # Only set for non-displayable outcomes.
    status: str = ""
    display_name: str = ""


@dataclass(frozen=True)
class OgScenario:
    name: str
    title_template: str
    description_template: str
    # token -> PreviewContext attribute
    tokens: Mapping[str, str]
    trim_owner: bool = False


@dataclass(frozen=True)
class OgDocument:
    title: str
    description: str
    html: str


_SHARED_TOKENS = {
    "{site_name}": "site_name",
    "{site_description}": "site_description",
    "{site_url}": "site_url",
    "{share_url}": "share_url",
    "{share_id}": "share_id",
}

FILE_SCENARIO = OgScenario(
    name="file",
    title_template="{file_name}",
    description_template="{file_size} · {owner_name}",
    tokens={
        **_SHARED_TOKENS,
        "{file_name}": "file_name",
        "{file_size}": "file_size",
        "{file_ext}": "file_ext",
        OWNER_NAME_TOKEN: "owner_name",
    },
    trim_owner=True,
)

FOLDER_SCENARIO = OgScenario(
    name="folder",
    title_template="{folder_name}",
    description_template="Folder · {owner_name}",
    tokens={
        **_SHARED_TOKENS,
        "{folder_name}": "folder_name",
        OWNER_NAME_TOKEN: "owner_name",
    },
    trim_owner=True,
)

STATUS_SCENARIO = OgScenario(
    name="status",
    title_template="{site_name}",
    description_template="{status}",
    tokens={**_SHARED_TOKENS, "{status}": "status"},
)


def replace_magic_vars(template: str, lookup: Mapping[str, str]) -> str:
    """Single-pass substitution; unknown tokens are kept verbatim."""
    return _MAGIC_VAR_RE.sub(lambda m: lookup.get(m.group(0), m.group(0)), template)


def trim_empty_owner_separator(template: str, rendered: str, owner_name: str) -> str:
    if owner_name or OWNER_NAME_TOKEN not in template:
        return rendered

    trimmed = _OWNER_SEPARATOR_RE.sub(" · ", rendered.strip()).strip()
    return trimmed.strip(_SEPARATOR).strip()


def render_magic_text(template: str, context: PreviewContext, scenario: OgScenario) -> str:
    lookup = {token: getattr(context, attr) for token, attr in scenario.tokens.items()}
    rendered = replace_magic_vars(template, lookup)
    if scenario.trim_owner:
        return trim_empty_owner_separator(template, rendered, context.owner_name)
    return rendered


def format_file_size(size: int) -> str:
    kb = 1024
    mb = 1024 * kb
    gb = 1024 * mb
    tb = 1024 * gb

    if size >= tb:
        return f"{size / tb:.2f} TB"
    if size >= gb:
        return f"{size / gb:.2f} GB"
    if size >= mb:
        return f"{size / mb:.2f} MB"
    if size >= kb:
        return f"{size / kb:.2f} KB"
    return f"{size} B"


def render_og_document(context: PreviewContext, title: str, description: str) -> str:
    try:
        template = _env.get_template(_OG_TEMPLATE_NAME)
        return template.render(
            title=title,
            description=description,
            thumbnail_url=context.thumbnail_url,
            share_url=context.share_url,
            site_name=context.site_name,
            redirect_url=context.redirect_url,
            display_name=context.display_name,
        )
    except TemplateError as exc:
        raise PreviewRenderError(f"failed to render OG template: {exc}") from exc


def render_scenario(
    context: PreviewContext,
    scenario: OgScenario,
    *,
    title_template: str | None = None,
    description_template: str | None = None,
) -> OgDocument:
    title = render_magic_text(title_template or scenario.title_template, context, scenario)
    description = render_magic_text(
        description_template or scenario.description_template, context, scenario
    )
    return OgDocument(
        title=title,
        description=description,
        html=render_og_document(context, title, description),
    )
