"""Issue title / body rendering.

Titles and bodies are Jinja2 templates evaluated against a notification. The
rendered title is also the key used to find an existing issue, so a title
template change effectively starts a new set of issues.

Template context
----------------
Every ``Notification`` field is available at the top level (``status``,
``group_key``, ``group_labels``, ``common_labels``, ``common_annotations``,
``external_url``, ``receiver``, ``version``, ``alerts``, ``truncated_alerts``)
plus ``identifier``, ``alert_name`` and ``data`` (the notification itself, so
``data.status`` and ``status`` are equivalent). Each alert exposes
``status``, ``labels``, ``annotations``, ``starts_at``, ``ends_at``,
``generator_url`` and ``fingerprint``.

Referencing a field that does not exist fails the render (``StrictUndefined``);
referencing a label or annotation the alert does not carry renders ``""``.
Dotted access on a label map always reads a label, never a dict method; iterate
labels with ``| dictsort``.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import jinja2

from .errors import ConfigError, TemplateError
from .models import LabelSet, Notification

DEFAULT_TITLE_TEMPLATE = "{{ group_labels.alertname }}"

DEFAULT_BODY_TEMPLATE = """\
Alertmanager URL: {{ external_url }}
{% for alert in alerts %}

  * {{ alert.status }} {{ alert.generator_url }}
{% if alert.labels %}

    Labels:

{% for key, value in alert.labels | dictsort %}
    - {{ key }} = {{ value }}
{% endfor %}
{% endif %}
{% if alert.annotations %}

    Annotations:

{% for key, value in alert.annotations | dictsort %}
    - {{ key }} = {{ value }}
{% endfor %}
{% endif %}
{% endfor %}
"""

ID_MARKER = "<!-- ID: {identifier} -->\n"

_TITLE = "title"
_BODY = "body"

# Failures raised while evaluating user templates (bad index, bad arithmetic, ...).
_RENDER_ERRORS = (
    jinja2.TemplateError,
    TypeError,
    ValueError,
    LookupError,
    AttributeError,
    ArithmeticError,
)


class _TemplateEnvironment(jinja2.Environment):
    """Label maps resolve ``labels.name`` to the label before any dict method.

    A label called ``items`` or ``get`` reads as its value, like any other label.
    """

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, LabelSet):
            return obj[attribute]
        return super().getattr(obj, attribute)


@dataclass(frozen=True)
class TemplateSet:
    """Title and body template sources, decided once at startup.

    ``includes`` holds extra named templates available to both entry points via
    ``{% include %}`` / ``{% import %}``.
    """

    title_template: str = DEFAULT_TITLE_TEMPLATE
    body_template: str = DEFAULT_BODY_TEMPLATE
    includes: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_files(
        cls,
        title_files: Sequence[str | os.PathLike[str]] | None = None,
        body_files: Sequence[str | os.PathLike[str]] | None = None,
    ) -> TemplateSet:
        """Load templates from files.

        The first file of each list is the entry point; every file (of both
        lists) is addressable by its base name. Empty lists keep the defaults.
        """
        includes: dict[str, str] = {}
        title_src = DEFAULT_TITLE_TEMPLATE
        body_src = DEFAULT_BODY_TEMPLATE
        for position, path in enumerate(title_files or ()):
            source = _read_template(path)
            includes[Path(path).name] = source
            if position == 0:
                title_src = source
        for position, path in enumerate(body_files or ()):
            source = _read_template(path)
            includes[Path(path).name] = source
            if position == 0:
                body_src = source
        return cls(
            title_template=title_src,
            body_template=body_src,
            includes=tuple(sorted(includes.items())),
        )


def _read_template(path: str | os.PathLike[str]) -> str:
    p = Path(path)
    try:
        return p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read template file {p}: {exc}") from exc


def template_context(notification: Notification) -> dict[str, Any]:
    ctx: dict[str, Any] = {f.name: getattr(notification, f.name) for f in fields(notification)}
    ctx["status"] = notification.status.value
    ctx["identifier"] = notification.identifier
    ctx["alert_name"] = notification.alert_name
    ctx["data"] = notification
    return ctx


class TemplateRenderer:
    """Compiled ``TemplateSet``; rendering is pure and thread-safe."""

    def __init__(self, templates: TemplateSet | None = None) -> None:
        self.templates = templates or TemplateSet()
        sources = dict(self.templates.includes)
        sources[_TITLE] = self.templates.title_template
        sources[_BODY] = self.templates.body_template
        self._env = _TemplateEnvironment(
            loader=jinja2.DictLoader(sources),
            undefined=jinja2.StrictUndefined,
            autoescape=False,  # nosec B701 - output is Markdown for issue text, not HTML
            trim_blocks=True,
            lstrip_blocks=True,
        )
        try:
            self._title = self._env.get_template(_TITLE)
            self._body = self._env.get_template(_BODY)
        except jinja2.TemplateError as exc:
            raise ConfigError(f"invalid template: {exc}") from exc

    def _render(self, template: jinja2.Template, kind: str, notification: Notification) -> str:
        try:
            return template.render(template_context(notification))
        except _RENDER_ERRORS as exc:
            raise TemplateError(f"format {kind} for {notification.group_key!r}: {exc}") from exc

    def render_title(self, notification: Notification) -> str:
        return self._render(self._title, _TITLE, notification)

    def render_body(self, notification: Notification) -> str:
        body = self._render(self._body, _BODY, notification)
        return ID_MARKER.format(identifier=notification.identifier) + body


__all__ = [
    "DEFAULT_BODY_TEMPLATE",
    "DEFAULT_TITLE_TEMPLATE",
    "TemplateRenderer",
    "TemplateSet",
    "template_context",
]
