"""
Release notes templates.

Templates are Jinja2 markdown templates rendered with the ``Release`` as
``release`` and its attributes at top level.
"""

from dataclasses import fields
from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

from .error_handling import TemplateError
from .release import Release

DEFAULT_TEMPLATE_FILE = "TEMPLATE"

DEFAULT_TEMPLATE = """\
{{ project_name }} {{ version }}

Welcome to the {{ tag }} release of {{ project_name }}!
{% if pre_release %}
*This is a pre-release of {{ project_name }}*
{% endif %}

{{ preface }}

{% if notes %}
### Notable Updates
{% for note in notes.values() %}
* **{{ note.title }}** {{ note.description }}
{% endfor %}

{% endif %}
{% if breaking %}
### Breaking Changes
{% for change in breaking.values() %}
* {{ change.description }} ({{ change.commit }})
{% endfor %}

{% endif %}
Please try out the release binaries and report any issues at
https://github.com/{{ github_repo }}/issues.

{% for project in changes %}
{% if project.name %}
### Changes from {{ project.name }}
{% elif project.since %}
### Changes since {{ project.since }}
{% else %}
### Changes
{% endif %}
{% for change in project.changes %}
* {{ change.commit }} {{ change.description }}
{% endfor %}

{% endfor %}
{% if contributors %}
### Contributors
{% for contributor in contributors %}
* {{ contributor }}
{% endfor %}

{% endif %}
### Dependency Changes
{% if dependencies %}
{% for dep in dependencies %}
* **{{ dep.name }}** {% if dep.previous %}{{ dep.previous }} -> {{ dep.ref }}{% else %}{{ dep.ref }} **_new_**{% endif %}

{% endfor %}
{% else %}
This release has no dependency changes
{% endif %}

Previous release can be found at [{{ previous }}](https://github.com/{{ github_repo }}/releases/tag/{{ previous }})
"""


def get_template(path: str = DEFAULT_TEMPLATE_FILE) -> str:
    """
    Template source at ``path``.

    The built-in template is used when the default file does not exist.

    Raises:
        TemplateError: A non-default template file cannot be read
    """
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        if path == DEFAULT_TEMPLATE_FILE:
            return DEFAULT_TEMPLATE
        raise TemplateError(f"template not found: {path}") from e
    except OSError as e:
        raise TemplateError(f"unable to read template {path}: {e}") from e


def create_env() -> Environment:
    return Environment(
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


def template_context(release: Release) -> Dict[str, Any]:
    context: Dict[str, Any] = {f.name: getattr(release, f.name) for f in fields(release)}
    context["breaking_changes"] = release.breaking
    context["release"] = release
    return context


def render(template: str, release: Release) -> str:
    """
    Render release notes.

    Raises:
        TemplateError: The template is invalid or uses unknown fields
    """
    try:
        compiled = create_env().from_string(template)
        return compiled.render(**template_context(release))
    except TemplateSyntaxError as e:
        raise TemplateError(f"invalid template at line {e.lineno}: {e.message}") from e
    except UndefinedError as e:
        raise TemplateError(f"template error: {e}") from e
