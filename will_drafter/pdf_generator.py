"""
PDF Generator Module

Renders a WillDocument onto a single A4 page using ReportLab.

Design Decisions:
=================

1. Single Page:
   - The whole document is laid into one Frame on one page
   - Flowables that do not fit are dropped (the export is clipped, and a
     warning is logged with the number of dropped elements)
   - Longer wills need the preview text or a future multi-page export

2. Two-Pass Rendering:
   - First pass: draw the page without the footer hash
   - Hash the first-pass bytes
   - Second pass: draw again with the hash in the footer

3. Determinism Enforcement:
   - rl_config.invariant removes timestamps and random ids from the file
   - The footer date comes from the generation_timestamp argument
   - Same document + timestamp = identical bytes
"""

import io
import logging
from typing import List, Dict, Any, Optional, Tuple
from datetime import datetime

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Frame, Paragraph, Spacer, Table, TableStyle, Flowable
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.pdfgen.canvas import Canvas
from reportlab import rl_config

from will_drafter.document_renderer import WillDocument, DocumentSection, ContentBlock
from will_drafter.utils import INDIA_TIMEZONE, calculate_sha256, escape_text, short_hash

# Enable invariant mode for deterministic PDF generation
rl_config.invariant = 1

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = 'iWills-in_Will.pdf'

# Page dimensions
PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN_LEFT = 18 * mm
MARGIN_RIGHT = 18 * mm
MARGIN_TOP = 15 * mm
MARGIN_BOTTOM = 18 * mm


class SignatureBlock(Flowable):
    """A rule with a caption and optional lines beneath, for signatures."""

    def __init__(self, content: Dict[str, str], width: float = 200):
        super().__init__()
        self.content = content
        self.block_width = width
        self.line_height = 12

    def _lines(self) -> List[Tuple[str, str]]:
        lines = [('Times-Roman', self.content.get('label', ''))]
        for key in ('name', 'address'):
            if self.content.get(key):
                font = 'Times-Bold' if key == 'name' and 'Name:' not in self.content[key] else 'Times-Roman'
                lines.append((font, self.content[key]))
        return lines

    def wrap(self, availWidth, availHeight):
        self.block_width = min(self.block_width, availWidth)
        self.height = len(self._lines()) * self.line_height + 20
        return (self.block_width, self.height)

    def draw(self):
        canvas = self.canv
        y = self.height - 14
        canvas.setLineWidth(0.8)
        canvas.line(0, y + 10, self.block_width, y + 10)
        for font, text in self._lines():
            canvas.setFont(font, 9)
            canvas.drawString(0, y, text)
            y -= self.line_height


def create_styles() -> Dict[str, ParagraphStyle]:
    """Create paragraph styles for the will document."""
    styles = getSampleStyleSheet()

    return {
        'title': ParagraphStyle(
            'WillTitle',
            parent=styles['Heading1'],
            fontSize=15,
            leading=19,
            alignment=TA_CENTER,
            spaceAfter=2,
            fontName='Times-Bold',
        ),
        'title_of': ParagraphStyle(
            'WillTitleOf',
            parent=styles['Normal'],
            fontSize=11,
            leading=14,
            alignment=TA_CENTER,
            fontName='Times-Bold',
        ),
        'section_heading': ParagraphStyle(
            'SectionHeading',
            parent=styles['Heading2'],
            fontSize=11.5,
            leading=14,
            spaceBefore=8,
            spaceAfter=4,
            fontName='Times-Bold',
            textColor=colors.HexColor('#1a1a1a'),
        ),
        'normal': ParagraphStyle(
            'WillNormal',
            parent=styles['Normal'],
            fontSize=9.5,
            leading=12.5,
            alignment=TA_JUSTIFY,
            spaceAfter=5,
            fontName='Times-Roman',
        ),
        'table_cell': ParagraphStyle(
            'TableCell',
            parent=styles['Normal'],
            fontSize=9,
            leading=11,
            fontName='Times-Roman',
        ),
    }


def format_timestamp_for_footer(timestamp: datetime, timezone: str = INDIA_TIMEZONE) -> str:
    """
    Format timestamp for PDF footer in Indian Standard Time.

    Args:
        timestamp: The generation timestamp (naive values are taken as UTC)
        timezone: Timezone for display

    Returns:
        Formatted timestamp string
    """
    if timestamp is None:
        return ''

    from zoneinfo import ZoneInfo
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=ZoneInfo('UTC'))
    return timestamp.astimezone(ZoneInfo(timezone)).strftime('%d %B %Y at %I:%M %p %Z')


def build_story(document: WillDocument, styles: Dict[str, ParagraphStyle]) -> List[Flowable]:
    """
    Build the ReportLab flowables for a document, top to bottom.

    Args:
        document: The rendered will
        styles: Paragraph styles

    Returns:
        List of flowables
    """
    title_lines = document.title_lines
    story: List[Flowable] = [
        Paragraph(escape_text(title_lines[0].upper()), styles['title']),
        Paragraph(escape_text(title_lines[1].upper()), styles['title_of']),
        Paragraph(escape_text(title_lines[2].upper()), styles['title']),
        Spacer(1, 8),
        Paragraph(escape_text(document.preamble), styles['normal']),
    ]

    for section in document.sections:
        story.extend(_render_section_to_elements(section, styles))

    story.append(Spacer(1, 6))
    story.append(Paragraph(escape_text(document.attestation), styles['normal']))
    story.append(Spacer(1, 18))
    story.append(SignatureBlock(document.testator_signature))
    story.append(Spacer(1, 8))
    story.append(Paragraph(escape_text(document.witness_statement), styles['normal']))
    story.append(Spacer(1, 16))

    witness_table = Table(
        [[SignatureBlock(w, width=190) for w in document.witnesses]],
        colWidths=[(PAGE_WIDTH - MARGIN_LEFT - MARGIN_RIGHT) / 2] * 2
    )
    witness_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('LEFTPADDING', (0, 0), (-1, -1), 0),
    ]))
    story.append(witness_table)
    return story


def _render_section_to_elements(section: DocumentSection,
                                styles: Dict[str, ParagraphStyle]) -> List[Flowable]:
    elements: List[Flowable] = [Paragraph(escape_text(section.heading), styles['section_heading'])]
    for block in section.content_blocks:
        element = _render_content_block(block, styles)
        if element is not None:
            elements.append(element)
    return elements


def _render_content_block(block: ContentBlock, styles: Dict[str, ParagraphStyle]):
    """
    Render a content block to a ReportLab element.

    Args:
        block: The content block
        styles: Paragraph styles

    Returns:
        ReportLab flowable or None
    """
    if block.type == 'paragraph':
        text = escape_text(block.content)
        if block.style == 'preformatted':
            text = text.replace('\n', '<br/>')
        return Paragraph(text, styles['normal'])

    elif block.type == 'table':
        cell = styles['table_cell']
        data = [[Paragraph(f'<b>{escape_text(h)}</b>', cell) for h in block.content['header']]]
        data += [
            [Paragraph(escape_text(value), cell) for value in row]
            for row in block.content['rows']
        ]
        usable = PAGE_WIDTH - MARGIN_LEFT - MARGIN_RIGHT
        table = Table(data, colWidths=[usable * 0.5, usable * 0.35, usable * 0.15], repeatRows=1)
        table.setStyle(TableStyle([
            ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#e5e5e5')),
            ('ALIGN', (2, 0), (2, -1), 'CENTER'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ]))
        return table

    elif block.type == 'signature_block':
        return SignatureBlock(block.content)

    return None


def _draw_page(canvas: Canvas, document: WillDocument, footer_text: str) -> int:
    """
    Draw the document on the canvas's single page.

    Returns:
        Number of flowables that did not fit and were dropped
    """
    story = build_story(document, create_styles())
    frame = Frame(
        MARGIN_LEFT, MARGIN_BOTTOM,
        PAGE_WIDTH - MARGIN_LEFT - MARGIN_RIGHT,
        PAGE_HEIGHT - MARGIN_TOP - MARGIN_BOTTOM,
        leftPadding=0, rightPadding=0, topPadding=0, bottomPadding=0,
        showBoundary=0
    )
    frame.addFromList(story, canvas)

    canvas.saveState()
    canvas.setFont('Times-Roman', 7)
    canvas.setFillColor(colors.HexColor('#666666'))
    canvas.drawString(MARGIN_LEFT, 10 * mm, footer_text)
    canvas.drawRightString(PAGE_WIDTH - MARGIN_RIGHT, 10 * mm, 'Page 1 of 1')
    canvas.restoreState()

    canvas.showPage()
    return len(story)


def _render_pass(document: WillDocument, footer_text: str) -> Tuple[bytes, int]:
    buffer = io.BytesIO()
    canvas = Canvas(buffer, pagesize=A4, invariant=1)
    canvas.setTitle('Last Will and Testament')
    canvas.setAuthor('iWills.in')
    canvas.setCreator('iWills.in')
    canvas.setSubject(document.testator_name)
    dropped = _draw_page(canvas, document, footer_text)
    canvas.save()
    return buffer.getvalue(), dropped


def generate_will_pdf(document: WillDocument,
                      generation_timestamp: Optional[datetime] = None) -> Tuple[bytes, str]:
    """
    Generate the single-page PDF of a will.

    Args:
        document: The rendered will
        generation_timestamp: Timestamp printed in the footer

    Returns:
        Tuple of (PDF bytes, SHA256 hash)
    """
    if generation_timestamp is None:
        generation_timestamp = datetime.utcnow()
    formatted_time = format_timestamp_for_footer(generation_timestamp)

    # First pass: hash the page without the hash in the footer
    first_bytes, dropped = _render_pass(document, f'Generated: {formatted_time}')
    content_hash = calculate_sha256(first_bytes)

    if dropped:
        logger.warning(f'Will PDF clipped: {dropped} element(s) did not fit on one page')

    footer = f'Generated: {formatted_time} | Hash: {short_hash(content_hash, 16)}'
    pdf_bytes, _ = _render_pass(document, footer)

    return pdf_bytes, calculate_sha256(pdf_bytes)


def suggested_filename(version: Optional[int] = None) -> str:
    """
    Download filename for a will PDF.

    Returns:
        'iWills-in_Will_v<version>.pdf' for a finalized will, otherwise
        'iWills-in_Will.pdf'
    """
    if version is None:
        return DEFAULT_FILENAME
    return f'iWills-in_Will_v{version}.pdf'


def verify_pdf_integrity(pdf_bytes: bytes, expected_hash: str) -> bool:
    """
    Verify PDF integrity by computing hash.

    Args:
        pdf_bytes: PDF content
        expected_hash: Expected SHA256 hash

    Returns:
        True if integrity verified
    """
    return calculate_sha256(pdf_bytes) == expected_hash
