"""Document and paper-size resolution for print jobs."""

from __future__ import annotations

import html
from datetime import datetime

from .core import JobType, PaperSize, PrintJob, RenderDocument, RenderError

_KNOWN_TYPES = frozenset(job_type.value for job_type in JobType)

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
@page {{ size: {width:g}mm {height:g}mm; margin: 0; }}
html, body {{ margin: 0; padding: 0; width: {width:g}mm; }}
body {{ font-family: monospace; font-size: 12px; }}
.ticket {{ padding: 2mm; }}
h1 {{ font-size: 16px; text-align: center; margin: 0 0 2mm 0; }}
pre {{ white-space: pre-wrap; margin: 0; }}
</style>
</head>
<body>
<div class="ticket">
{body}
</div>
</body>
</html>
"""


def resolve_paper_size(job: PrintJob, default: PaperSize) -> PaperSize:
    """Use the job's dimensions when present and positive, else ``default``."""

    width = job.paper_width_mm
    height = job.paper_height_mm
    return PaperSize(
        width_mm=width if width is not None and width > 0 else default.width_mm,
        height_mm=height if height is not None and height > 0 else default.height_mm,
    )


def build_document(
    job: PrintJob, *, device_name: str, paper: PaperSize, now: datetime
) -> RenderDocument:
    """Produce the renderable document for ``job``.

    Raises:
        RenderError: For unknown job types and tickets with nothing to print.
    """

    title = f"Job {job.id}"

    if job.type not in _KNOWN_TYPES:
        raise RenderError(f"unknown job type: {job.type}")

    if job.html:
        return RenderDocument(content=job.html, title=title)

    if job.type == JobType.TEST.value:
        return RenderDocument(
            content=render_test_page(device_name=device_name, paper=paper, now=now),
            title=f"Test print {job.id}",
        )

    text = job.fields.get("text")
    if not text:
        raise RenderError("ticket job has no printable content")
    body = f"<pre>{html.escape(str(text))}</pre>"
    return RenderDocument(content=_page(title, paper, body), title=title)


def render_test_page(*, device_name: str, paper: PaperSize, now: datetime) -> str:
    lines = [
        "<h1>print-relay test</h1>",
        f"<p>Printer: {html.escape(device_name)}</p>",
        f"<p>Paper: {paper.width_mm:g} x {paper.height_mm:g} mm</p>",
        f"<p>Date: {html.escape(now.strftime('%Y-%m-%d %H:%M:%S'))}</p>",
    ]
    return _page("print-relay test", paper, "\n".join(lines))


def _page(title: str, paper: PaperSize, body: str) -> str:
    return _PAGE_TEMPLATE.format(
        title=html.escape(title),
        width=paper.width_mm,
        height=paper.height_mm,
        body=body,
    )
