"""
Document PDF rendering

Renders a quotation or invoice to A4 PDF bytes with PyMuPDF. Pure: reads the
document, its client and the company settings, writes nothing.

Layout (top to bottom):
- company header (logo when configured as a base64 data URL)
- title, document number and dates
- client block
- item table, grouped by group_name
- subtotal / discount / tax / total and the amount in words
- bank account, notes, terms, signature
"""

import base64
import binascii
import logging
from datetime import datetime
from itertools import groupby
from typing import List, Optional, Tuple

import fitz  # PyMuPDF

from services.terbilang import format_rupiah, terbilang

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = fitz.paper_size("a4")
MARGIN = 40
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN
BOTTOM_LIMIT = PAGE_HEIGHT - MARGIN

FONT = "helv"
FONT_BOLD = "hebo"
FONT_ITALIC = "heit"


def _rgb(hex_color: str) -> Tuple[float, float, float]:
    hex_color = hex_color.lstrip("#")
    return tuple(int(hex_color[i:i + 2], 16) / 255 for i in (0, 2, 4))


PRIMARY_COLOR = _rgb("#1e40af")
TEXT_COLOR = _rgb("#333333")
TEXT_SECONDARY = _rgb("#64748b")
BG_LIGHT = _rgb("#eff6ff")
WHITE = (1, 1, 1)

# Item table columns: (header, x offset, width, right aligned)
COLUMNS = [
    ("No", 0, 25, False),
    ("Description", 25, 245, False),
    ("Qty", 270, 50, True),
    ("Unit", 325, 45, False),
    ("Price", 370, 75, True),
    ("Amount", 445, 70, True),
]


def _fmt_date(value) -> str:
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    return str(value) if value else "-"


def _fmt_qty(value) -> str:
    value = float(value or 0)
    return str(int(value)) if value.is_integer() else f"{value:g}"


def decode_image(data_url: Optional[str]) -> Optional[bytes]:
    """Image bytes from a 'data:image/...;base64,' URL, or None"""
    if not data_url or "base64," not in data_url:
        return None
    try:
        return base64.b64decode(data_url.split("base64,", 1)[1])
    except (binascii.Error, ValueError) as e:
        logger.warning(f"[PDF] Ignoring undecodable image: {e}")
        return None


def pdf_filename(document: dict) -> str:
    """'INV/2024/03/00007' -> 'INV-2024-03-00007.pdf'"""
    return f"{document.get('document_number', 'document').replace('/', '-')}.pdf"


def default_bank_line(company: dict) -> Optional[str]:
    """The default (or first) bank account of the company as one line"""
    accounts = company.get("bank_accounts") or []
    account = next((acc for acc in accounts if acc.get("is_default")), accounts[0] if accounts else None)
    if account is None:
        return None
    line = f"{account.get('bank_name', '')} {account.get('account_number', '')}".strip()
    if account.get("account_holder"):
        line += f" a.n. {account['account_holder']}"
    return line


class _PageWriter:
    """Keeps a vertical cursor and starts a new page when it runs out"""

    def __init__(self, doc: fitz.Document):
        self.doc = doc
        self.page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        self.y = MARGIN

    def ensure_space(self, height: float) -> None:
        if self.y + height > BOTTOM_LIMIT:
            self.page = self.doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
            self.y = MARGIN

    def text(self, x: float, y: float, value: str, size: float = 9,
             font: str = FONT, color=TEXT_COLOR) -> None:
        self.page.insert_text((x, y), value, fontsize=size, fontname=font, color=color)

    def text_right(self, right: float, y: float, value: str, size: float = 9,
                   font: str = FONT, color=TEXT_COLOR) -> None:
        width = fitz.get_text_length(value, fontname=font, fontsize=size)
        self.text(right - width, y, value, size=size, font=font, color=color)

    def rect(self, x0: float, y0: float, x1: float, y1: float, fill=None, color=None) -> None:
        self.page.draw_rect(fitz.Rect(x0, y0, x1, y1), color=color, fill=fill, width=0.5)

    def wrapped(self, x: float, width: float, value: str, size: float = 9,
                font: str = FONT, color=TEXT_COLOR) -> None:
        """Write a paragraph, wrapping on words, advancing the cursor"""
        for line in _wrap(value, width, size, font):
            self.ensure_space(size + 4)
            self.y += size + 3
            self.text(x, self.y, line, size=size, font=font, color=color)


def _wrap(value: str, width: float, size: float, font: str) -> List[str]:
    lines: List[str] = []
    for paragraph in (value or "").splitlines() or [""]:
        current = ""
        for word in paragraph.split(" "):
            trial = f"{current} {word}".strip()
            if current and fitz.get_text_length(trial, fontname=font, fontsize=size) > width:
                lines.append(current)
                current = word
            else:
                current = trial
        lines.append(current)
    return lines


def render_document_pdf(
    kind: str,
    document: dict,
    client: Optional[dict],
    company_settings: dict
) -> bytes:
    """
    Render a document to PDF bytes.

    ``kind`` is "invoice" or "quotation"; it picks the title and which
    date field is printed next to the issue date.
    """
    company_settings = company_settings or {}
    client = client or {}
    doc = fitz.open()
    try:
        writer = _PageWriter(doc)
        _draw_header(writer, company_settings)
        _draw_title(writer, kind, document)
        _draw_client(writer, client)
        _draw_items(writer, document.get("items", []))
        _draw_totals(writer, document, company_settings)
        _draw_footer(writer, document, company_settings)
        pdf_bytes = doc.tobytes()
    finally:
        doc.close()

    logger.info(f"[PDF] Rendered {kind} {document.get('document_number')} ({len(pdf_bytes)} bytes)")
    return pdf_bytes


def _draw_header(writer: _PageWriter, company: dict) -> None:
    x = MARGIN
    logo = decode_image(company.get("logo"))
    if logo:
        try:
            writer.page.insert_image(fitz.Rect(MARGIN, writer.y, MARGIN + 60, writer.y + 60), stream=logo)
            x = MARGIN + 70
        except (RuntimeError, ValueError) as e:
            logger.warning(f"[PDF] Could not draw logo: {e}")

    writer.text(x, writer.y + 14, company.get("company_name") or "", size=16, font=FONT_BOLD, color=PRIMARY_COLOR)
    line_y = writer.y + 28
    for line in (
        company.get("legal_name"),
        company.get("address"),
        company.get("city"),
        " | ".join(v for v in (company.get("phone"), company.get("email")) if v),
        f"NPWP: {company['tax_id']}" if company.get("tax_id") else None,
    ):
        if line:
            writer.text(x, line_y, line, size=8, color=TEXT_SECONDARY)
            line_y += 10

    writer.y = max(writer.y + 64, line_y) + 6
    writer.page.draw_line((MARGIN, writer.y), (PAGE_WIDTH - MARGIN, writer.y), color=PRIMARY_COLOR, width=1.5)
    writer.y += 10


def _draw_title(writer: _PageWriter, kind: str, document: dict) -> None:
    title = "INVOICE" if kind == "invoice" else "QUOTATION"
    term_label, term_key = ("Due Date", "due_date") if kind == "invoice" else ("Valid Until", "valid_until")

    writer.text(MARGIN, writer.y + 18, title, size=20, font=FONT_BOLD, color=PRIMARY_COLOR)

    rows = [
        ("Number", document.get("document_number", "")),
        ("Date", _fmt_date(document.get("issue_date"))),
        (term_label, _fmt_date(document.get(term_key))),
    ]
    if document.get("po_number"):
        rows.append(("PO Number", document["po_number"]))
    if document.get("project_name"):
        rows.append(("Project", document["project_name"]))

    box_x = PAGE_WIDTH - MARGIN - 200
    box_h = 14 * len(rows) + 6
    writer.rect(box_x, writer.y, PAGE_WIDTH - MARGIN, writer.y + box_h, fill=BG_LIGHT)
    for i, (label, value) in enumerate(rows):
        row_y = writer.y + 14 + i * 14
        writer.text(box_x + 5, row_y, label, size=8, font=FONT_BOLD)
        writer.text(box_x + 70, row_y, str(value), size=8)

    writer.y += max(box_h, 30) + 12


def _draw_client(writer: _PageWriter, client: dict) -> None:
    writer.text(MARGIN, writer.y + 10, "Bill To:", size=9, font=FONT_BOLD, color=TEXT_SECONDARY)
    writer.y += 10
    writer.wrapped(MARGIN, CONTENT_WIDTH / 2, client.get("name") or "-", size=11, font=FONT_BOLD)
    for line in (
        f"Attn: {client['contact_name']}" if client.get("contact_name") else None,
        client.get("address"),
        " ".join(v for v in (client.get("city"), client.get("postal_code")) if v),
        client.get("phone"),
        client.get("email"),
    ):
        if line:
            writer.wrapped(MARGIN, CONTENT_WIDTH / 2, line, size=8, color=TEXT_SECONDARY)
    writer.y += 14


def _draw_table_header(writer: _PageWriter) -> None:
    writer.ensure_space(22)
    writer.rect(MARGIN, writer.y, PAGE_WIDTH - MARGIN, writer.y + 18, fill=PRIMARY_COLOR)
    for header, offset, width, right in COLUMNS:
        x = MARGIN + offset + 4
        if right:
            writer.text_right(x + width - 8, writer.y + 12, header, size=8, font=FONT_BOLD, color=WHITE)
        else:
            writer.text(x, writer.y + 12, header, size=8, font=FONT_BOLD, color=WHITE)
    writer.y += 18


def _draw_items(writer: _PageWriter, items: List[dict]) -> None:
    _draw_table_header(writer)

    number = 0
    for group_name, group in groupby(items, key=lambda item: item.get("group_name") or ""):
        if group_name:
            writer.ensure_space(16)
            writer.text(MARGIN + 29, writer.y + 11, group_name, size=8, font=FONT_BOLD, color=PRIMARY_COLOR)
            writer.y += 15

        for item in group:
            number += 1
            description = item.get("description", "")
            if item.get("model"):
                description = f"{item['model']} - {description}"
            desc_offset, desc_width = COLUMNS[1][1], COLUMNS[1][2]
            lines = _wrap(description, desc_width - 8, 8, FONT)
            row_h = 12 * len(lines) + 4

            writer.ensure_space(row_h)
            if writer.y == MARGIN:
                _draw_table_header(writer)

            base = writer.y + 11
            writer.text(MARGIN + 4, base, str(number), size=8)
            for i, line in enumerate(lines):
                writer.text(MARGIN + desc_offset + 4, base + i * 12, line, size=8)
            cells = {
                "Qty": _fmt_qty(item.get("quantity")),
                "Unit": item.get("unit") or "",
                "Price": format_rupiah(item.get("unit_price") or 0),
                "Amount": format_rupiah(item.get("amount") or 0),
            }
            for header, offset, width, right in COLUMNS[2:]:
                if right:
                    writer.text_right(MARGIN + offset + width - 4, base, cells[header], size=8)
                else:
                    writer.text(MARGIN + offset + 4, base, cells[header], size=8)

            writer.y += row_h
            writer.page.draw_line((MARGIN, writer.y), (PAGE_WIDTH - MARGIN, writer.y), color=BG_LIGHT, width=0.5)

    writer.y += 10


def _draw_totals(writer: _PageWriter, document: dict, company: dict) -> None:
    tax_name = company.get("default_tax_name") or "Tax"
    rows = [("Subtotal", document.get("subtotal", 0))]
    if document.get("discount_amount"):
        rows.append((f"Discount ({document.get('discount_percent', 0):g}%)", -document["discount_amount"]))
    rows.append((f"{tax_name} ({document.get('tax_rate', 0):g}%)", document.get("tax_amount", 0)))

    writer.ensure_space(20 * len(rows) + 50)
    label_x = PAGE_WIDTH - MARGIN - 200
    right = PAGE_WIDTH - MARGIN - 5
    for label, value in rows:
        writer.y += 14
        writer.text(label_x, writer.y, label, size=9)
        amount = format_rupiah(abs(value))
        writer.text_right(right, writer.y, f"-{amount}" if value < 0 else amount, size=9)

    writer.y += 6
    writer.rect(label_x - 5, writer.y, PAGE_WIDTH - MARGIN, writer.y + 20, fill=PRIMARY_COLOR)
    writer.text(label_x, writer.y + 14, "TOTAL", size=10, font=FONT_BOLD, color=WHITE)
    writer.text_right(right, writer.y + 14, format_rupiah(document.get("total", 0)), size=10, font=FONT_BOLD, color=WHITE)
    writer.y += 28

    writer.rect(MARGIN, writer.y, PAGE_WIDTH - MARGIN, writer.y + 20, fill=BG_LIGHT)
    writer.text(MARGIN + 5, writer.y + 13, "Terbilang:", size=8, font=FONT_BOLD)
    writer.text(MARGIN + 60, writer.y + 13, terbilang(document.get("total", 0)), size=8, font=FONT_ITALIC, color=PRIMARY_COLOR)
    writer.y += 30


def _draw_footer(writer: _PageWriter, document: dict, company: dict) -> None:
    half = CONTENT_WIDTH / 2 - 10

    sections = [
        ("Payment", document.get("bank_account") or default_bank_line(company)),
        ("Notes", document.get("notes")),
        ("Terms & Conditions", document.get("terms")),
    ]
    for heading, body in sections:
        if not body:
            continue
        writer.ensure_space(30)
        writer.y += 12
        writer.text(MARGIN, writer.y, heading, size=9, font=FONT_BOLD, color=PRIMARY_COLOR)
        writer.wrapped(MARGIN, half, body, size=8)
        writer.y += 4

    signature_name = document.get("signature_name") or company.get("signature_name")
    writer.ensure_space(90)
    sign_x = PAGE_WIDTH - MARGIN - 150
    writer.y += 16
    writer.text(sign_x, writer.y, "Regards,", size=9)
    writer.text(sign_x, writer.y + 12, company.get("company_name") or "", size=9, font=FONT_BOLD)
    signature = decode_image(company.get("signature_image"))
    if signature:
        try:
            writer.page.insert_image(fitz.Rect(sign_x, writer.y + 18, sign_x + 110, writer.y + 66), stream=signature)
        except (RuntimeError, ValueError) as e:
            logger.warning(f"[PDF] Could not draw signature: {e}")
    writer.y += 70
    writer.page.draw_line((sign_x, writer.y), (sign_x + 140, writer.y), color=TEXT_COLOR, width=0.5)
    if signature_name:
        writer.text(sign_x, writer.y + 12, signature_name, size=9, font=FONT_BOLD)
