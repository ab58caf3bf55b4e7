"""PDF serializer for report view models (reportlab platypus)."""
from xml.sax.saxutils import escape

from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .viewmodel import check_cancelled, format_value

MARGIN = 36
FONT_SIZE = 8


class _CancellableDocTemplate(SimpleDocTemplate):
    def __init__(self, filename, cancel=None, **kw):
        self._cancel = cancel
        super().__init__(filename, **kw)

    def afterFlowable(self, flowable):
        check_cancelled(self._cancel)


def _page_size(columns):
    needed = sum(c.width for c in columns) + 2 * MARGIN
    return A4 if needed <= A4[0] else landscape(A4)


def _col_widths(columns, pagesize):
    widths = [c.width for c in columns]
    available = pagesize[0] - 2 * MARGIN
    total = sum(widths)
    if total > available:
        # Many subjects: shrink every column by the same factor
        widths = [w * available / total for w in widths]
    return widths


def _table_style(vm):
    numeric_cols = [i for i, c in enumerate(vm.columns) if c.numeric]
    style = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f3f4f6')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.HexColor('#111827')),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), FONT_SIZE),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('LINEBELOW', (0, 0), (-1, -1), 0.25, colors.HexColor('#d1d5db')),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('LEFTPADDING', (0, 0), (-1, -1), 3),
        ('RIGHTPADDING', (0, 0), (-1, -1), 3),
        ('TOPPADDING', (0, 0), (-1, -1), 2),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
    ]
    for i in numeric_cols:
        style.append(('ALIGN', (i, 1), (i, -1), 'CENTER'))
    return TableStyle(style)


def render_pdf(vm, out, rows_per_page=30, cancel=None):
    """Write ``vm`` as a PDF to the binary file object ``out``.

    At most ``rows_per_page`` student rows go on a page; every page repeats
    the bold header row and carries the generation time and page number.
    """
    pagesize = _page_size(vm.columns)
    doc = _CancellableDocTemplate(
        out, cancel=cancel, pagesize=pagesize,
        leftMargin=MARGIN, rightMargin=MARGIN, topMargin=MARGIN, bottomMargin=MARGIN,
        title=vm.title,
    )
    styles = getSampleStyleSheet()
    widths = _col_widths(vm.columns, pagesize)
    style = _table_style(vm)
    header = vm.header

    elements = [
        Paragraph(f'<b>{escape(vm.title)}</b>', styles['Title']),
        Paragraph(f'<font size=9>{escape(vm.subtitle)}</font>', styles['Normal']),
        Spacer(1, 10),
    ]
    rows = [[format_value(v) for v in row] for row in vm.rows]
    chunks = [rows[i:i + rows_per_page] for i in range(0, len(rows), rows_per_page)] or [[]]
    for n, chunk in enumerate(chunks):
        check_cancelled(cancel)
        if n:
            elements.append(PageBreak())
        tbl = Table([header] + chunk, colWidths=widths, repeatRows=1)
        tbl.setStyle(style)
        elements.append(tbl)

    elements.append(Spacer(1, 10))
    for item in vm.summary:
        elements.append(Paragraph(escape(f'{item.label}: {format_value(item.value)}'), styles['Normal']))

    generated = vm.generated_at
    if timezone.is_aware(generated):
        generated = timezone.localtime(generated)
    stamp = generated.strftime('%Y-%m-%d %H:%M')

    def footer(canv, doc_):
        canv.saveState()
        canv.setFont('Helvetica', 8)
        canv.drawString(MARGIN, 20, f'Generated: {stamp}')
        right = f'Page {canv.getPageNumber()}'
        w = canv.stringWidth(right, 'Helvetica', 8)
        canv.drawString(pagesize[0] - MARGIN - w, 20, right)
        canv.restoreState()

    doc.build(elements, onFirstPage=footer, onLaterPages=footer)
