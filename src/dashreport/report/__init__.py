"""Report generation: panel rendering, LaTeX assembly and compilation."""

from dashreport.report.compiler import LatexCompiler
from dashreport.report.renderer import PanelRenderer, RenderedImage, RenderResult, image_name
from dashreport.report.report import Report, ReportSource
from dashreport.report.templates import DEFAULT_TEMPLATE, load_template, template_context

__all__ = [
    "Report",
    "ReportSource",
    "PanelRenderer",
    "RenderedImage",
    "RenderResult",
    "image_name",
    "LatexCompiler",
    "DEFAULT_TEMPLATE",
    "load_template",
    "template_context",
]
