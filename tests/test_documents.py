from datetime import datetime

import pytest

from print_relay.core import PaperSize, PrintJob, RenderError
from print_relay.documents import build_document, resolve_paper_size

DEFAULT_PAPER = PaperSize(width_mm=80.0, height_mm=150.0)
NOW = datetime(2024, 5, 1, 9, 30, 0)


def test_resolve_paper_size_prefers_job_dimensions():
    job = PrintJob(id="J1", type="ticket", paper_width_mm=58.0, paper_height_mm=200.0)

    assert resolve_paper_size(job, DEFAULT_PAPER) == PaperSize(58.0, 200.0)


@pytest.mark.parametrize(("width", "height"), [(None, None), (0.0, -5.0)])
def test_resolve_paper_size_falls_back_to_defaults(width, height):
    job = PrintJob(id="J1", type="ticket", paper_width_mm=width, paper_height_mm=height)

    assert resolve_paper_size(job, DEFAULT_PAPER) == DEFAULT_PAPER


def test_html_is_used_verbatim():
    markup = "<html><body><h1>Order 42</h1></body></html>"
    job = PrintJob(id="J1", type="ticket", html=markup)

    document = build_document(job, device_name="TM-T20", paper=DEFAULT_PAPER, now=NOW)

    assert document.content == markup
    assert document.content_type == "text/html"


def test_test_job_synthesizes_sized_page():
    job = PrintJob(id="J2", type="test")

    document = build_document(job, device_name="TM-T20", paper=DEFAULT_PAPER, now=NOW)

    assert "TM-T20" in document.content
    assert "80 x 150 mm" in document.content
    assert "2024-05-01 09:30:00" in document.content
    assert "size: 80mm 150mm; margin: 0;" in document.content


def test_ticket_text_is_escaped_into_page():
    job = PrintJob(id="J3", type="ticket", fields={"text": "1x Coffee <large>"})

    document = build_document(job, device_name="TM-T20", paper=DEFAULT_PAPER, now=NOW)

    assert "<pre>1x Coffee &lt;large&gt;</pre>" in document.content


def test_ticket_without_content_is_rejected():
    job = PrintJob(id="J4", type="ticket")

    with pytest.raises(RenderError, match="no printable content"):
        build_document(job, device_name="TM-T20", paper=DEFAULT_PAPER, now=NOW)


def test_unknown_type_is_rejected_even_with_html():
    job = PrintJob(id="J5", type="label", html="<p>hi</p>")

    with pytest.raises(RenderError, match="unknown job type: label"):
        build_document(job, device_name="TM-T20", paper=DEFAULT_PAPER, now=NOW)


def test_print_job_from_payload_collects_extra_fields():
    job = PrintJob.from_payload(
        {"id": 7, "type": "ticket", "paperWidth": "58", "text": "hello"}
    )

    assert job.id == "7"
    assert job.paper_width_mm == 58.0
    assert job.paper_height_mm is None
    assert job.fields == {"text": "hello"}
