import pytest

from print_relay.core import RenderOptions

try:
    from weasyprint import CSS, HTML

    from print_relay.backends.pdf import page_stylesheet, render_pdf
except (ImportError, OSError) as exc:  # Pango missing on the host
    pytest.skip(f"weasyprint cannot load: {exc}", allow_module_level=True)

PX_PER_MM = 96 / 25.4

A4_MARKUP = """<html><head><style>
@page { size: A4; margin: 20mm; }
</style></head><body><p>Order 42</p></body></html>"""


def test_page_stylesheet_pins_size_and_margins():
    options = RenderOptions(width_mm=80.0, height_mm=150.0)

    assert page_stylesheet(options) == (
        "@page { size: 80mm 150mm !important; margin: 0 !important; }"
    )


def test_render_pdf_produces_pdf_bytes():
    pdf = render_pdf("<p>Order 42</p>", RenderOptions(width_mm=80.0, height_mm=150.0))

    assert pdf.startswith(b"%PDF")


def test_paper_size_overrides_document_page_rule():
    options = RenderOptions(width_mm=58.0, height_mm=100.0)

    document = HTML(string=A4_MARKUP).render(
        stylesheets=[CSS(string=page_stylesheet(options))]
    )

    page = document.pages[0]
    assert page.width == pytest.approx(58.0 * PX_PER_MM, rel=1e-3)
    assert page.height == pytest.approx(100.0 * PX_PER_MM, rel=1e-3)
