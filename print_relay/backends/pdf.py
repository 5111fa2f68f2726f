"""HTML to PDF conversion at the job's physical page size."""

from __future__ import annotations

from weasyprint import CSS, HTML

from ..core import RenderOptions


def page_stylesheet(options: RenderOptions) -> str:
    """``@page`` rule pinning the sheet to the paper size.

    Marked important so that it overrides any page size or margin the job
    markup declares.
    """
    margin = "0" if options.margins == "none" else "auto"
    return (
        f"@page {{ size: {options.width_mm:g}mm {options.height_mm:g}mm !important; "
        f"margin: {margin} !important; }}"
    )


def render_pdf(html: str, options: RenderOptions) -> bytes:
    document = HTML(string=html).render(
        stylesheets=[CSS(string=page_stylesheet(options))]
    )
    return document.write_pdf(zoom=options.scale / 100)
