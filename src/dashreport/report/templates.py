"""LaTeX report templates.

Templates are jinja2 with delimiters that stay out of LaTeX's way::

    [[ expression ]]    [% statement %]    [# comment #]

Custom templates live in the configured template directory as ``<name>.tex``
and receive the same context as the built-in one (see ``template_context``).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jinja2

from dashreport.core.errors import TemplateNotFound
from dashreport.grafana.dashboard import Dashboard, Panel
from dashreport.grafana.time import ResolvedTimeRange

DEFAULT_TEMPLATE = r"""\documentclass{article}
\usepackage{graphicx}
\usepackage[margin=1in]{geometry}

\graphicspath{ {images/} }
\begin{document}
\title{[[ title ]][% if variable_values %] \\ \large [[ variable_values ]][% endif %][% if description %] \\ \small [[ description ]][% endif %]}
\date{[[ from_formatted ]]\\to\\[[ to_formatted ]]}
\maketitle
\begin{center}
[% for section in sections %]
[% if section.title %]
\section*{[[ section.title ]]}
[% endif %]
[% for panel in section.panels %]
[% if panel.is_single_stat %]
\begin{minipage}{0.3\textwidth}
\includegraphics[width=\textwidth]{image[[ panel.id ]]}
[% if panel.title %]
\\ {\footnotesize [[ panel.title ]]}
[% endif %]
\end{minipage}
[% else %]
\par
\vspace{0.5cm}
\includegraphics[width=\textwidth]{image[[ panel.id ]]}
[% if panel.title %]
\\ {\small [[ panel.title ]]}
[% endif %]
\par
\vspace{0.5cm}
[% endif %]
[% endfor %]
[% endfor %]
\end{center}
\end{document}
"""


def _environment(loader: jinja2.BaseLoader | None = None) -> jinja2.Environment:
    return jinja2.Environment(
        loader=loader,
        block_start_string="[%",
        block_end_string="%]",
        variable_start_string="[[",
        variable_end_string="]]",
        comment_start_string="[#",
        comment_end_string="#]",
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
        undefined=jinja2.StrictUndefined,
    )


@dataclass(frozen=True)
class Section:
    title: str
    panels: tuple[Panel, ...]


def load_template(name: str | None = None, template_dir: Path | str | None = None) -> jinja2.Template:
    """Return the named template from ``template_dir``, or the built-in one."""
    if not name:
        return _environment().from_string(DEFAULT_TEMPLATE)
    if template_dir is None:
        raise TemplateNotFound(f"template {name!r} requested but no template directory is configured")

    filename = name if name.endswith(".tex") else f"{name}.tex"
    env = _environment(jinja2.FileSystemLoader(str(template_dir)))
    try:
        return env.get_template(filename)
    except jinja2.TemplateNotFound as exc:
        raise TemplateNotFound(
            f"template {name!r} not found in {template_dir}",
            {"template": name},
        ) from exc


def template_context(
    dashboard: Dashboard,
    time_range: ResolvedTimeRange,
    rendered_ids: set[int],
) -> dict[str, Any]:
    """Values available to report templates.

    Panels whose image failed to render are left out of ``panels`` and
    ``sections``; rows left without any panel keep their title.
    """
    sections = [
        Section(title, tuple(p for p in panels if p.id in rendered_ids))
        for title, panels in dashboard.sections()
    ]
    return {
        "title": dashboard.title,
        "description": dashboard.description,
        "variable_values": dashboard.variable_values,
        "from_formatted": time_range.from_formatted,
        "to_formatted": time_range.to_formatted,
        "time_range": time_range,
        "panels": [p for p in dashboard.panels if p.id in rendered_ids],
        "sections": sections,
        "dashboard": dashboard,
    }
