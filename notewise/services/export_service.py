"""Notes export.

Smart notes are Markdown. They download as-is, or are converted to HTML with
markdown2 and laid out as a simple reportlab PDF (headings, bullets,
bold/italic and paragraphs).
"""
from __future__ import annotations

import html as html_lib
import io
import re
from typing import List, Optional, Tuple
from xml.sax.saxutils import escape

import markdown2
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import letter as rl_letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

MARKDOWN_EXTRAS = ["cuddled-lists", "strike"]

_BLOCK_TAG_RE = re.compile(r"<(/?)(h[1-6]|p|li|ul|ol|pre|blockquote|hr)\b[^>]*>", re.IGNORECASE)
_CONTENT_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "pre"}
_INLINE_TAGS = {
    "strong": ("<b>", "</b>"),
    "b": ("<b>", "</b>"),
    "em": ("<i>", "</i>"),
    "i": ("<i>", "</i>"),
    "code": ('<font face="Courier">', "</font>"),
    "strike": ("<strike>", "</strike>"),
    "s": ("<strike>", "</strike>"),
    "del": ("<strike>", "</strike>"),
}
_INLINE_TAG_RE = re.compile(r"<(/?)([a-zA-Z][a-zA-Z0-9]*)\b[^>]*?/?>")
_ANY_TAG_RE = re.compile(r"<[^<]+?>")


def notes_filename(note_length: str, ext: str = "md") -> str:
    return f"smart-notes-{note_length}.{ext}"


def markdown_blocks(markdown: str) -> List[Tuple[str, str]]:
    """Render Markdown with markdown2 and split the HTML into ``(tag, inner_html)`` blocks.

    Every block tag ends the block before it, so nested lists come out as one
    ``li`` block per item.
    """
    rendered = markdown2.markdown(markdown or "", extras=MARKDOWN_EXTRAS)
    blocks: List[Tuple[str, str]] = []
    current: Optional[str] = None
    buf: List[str] = []

    def flush() -> None:
        text = "".join(buf).strip()
        if text:
            blocks.append((current or "p", text))
        buf.clear()

    pos = 0
    for m in _BLOCK_TAG_RE.finditer(rendered):
        buf.append(rendered[pos:m.start()])
        pos = m.end()
        closing, tag = m.group(1), m.group(2).lower()
        # loose lists wrap item text in <p>
        if not closing and tag == "p" and current == "li" and not "".join(buf).strip():
            continue
        flush()
        current = tag if not closing and tag in _CONTENT_TAGS else None
    buf.append(rendered[pos:])
    flush()
    return blocks


def inline_markup(fragment: str) -> str:
    """Map markdown2's inline HTML onto the tags reportlab paragraphs understand.

    Unknown tags (links, images, spans) are dropped and their text kept.
    """
    def replace(m: re.Match) -> str:
        closing, tag = m.group(1), m.group(2).lower()
        if tag == "br":
            return "<br/>"
        mapped = _INLINE_TAGS.get(tag)
        if not mapped:
            return ""
        return mapped[1] if closing else mapped[0]

    return _INLINE_TAG_RE.sub(replace, fragment).strip()


def plain_text(fragment: str) -> str:
    return escape(html_lib.unescape(_ANY_TAG_RE.sub("", fragment))).strip()


def _paragraph(fragment: str, style: ParagraphStyle, **kwargs) -> Paragraph:
    try:
        return Paragraph(inline_markup(fragment), style, **kwargs)
    except ValueError:
        # reportlab rejects misnested emphasis; keep the words
        return Paragraph(plain_text(fragment), style, **kwargs)


def markdown_to_pdf(markdown: str, title: str = "Smart Notes") -> bytes:
    styles = getSampleStyleSheet()
    body = ParagraphStyle("NotesBody", parent=styles["BodyText"], fontSize=10.5, leading=14, alignment=TA_LEFT)
    bullet = ParagraphStyle("NotesBullet", parent=body, leftIndent=16, bulletIndent=4, spaceAfter=2)
    code = ParagraphStyle("NotesCode", parent=body, fontName="Courier", fontSize=9, leftIndent=8)
    heading_styles = {
        1: styles["Heading1"],
        2: styles["Heading2"],
        3: styles["Heading3"],
    }

    story: List = []
    for tag, fragment in markdown_blocks(markdown):
        if tag.startswith("h"):
            level = min(int(tag[1]), 3)
            story.append(_paragraph(fragment, heading_styles[level]))
        elif tag == "li":
            story.append(_paragraph(fragment, bullet, bulletText="•"))
        elif tag == "pre":
            story.append(Paragraph(plain_text(fragment).replace("\n", "<br/>"), code))
            story.append(Spacer(1, 4))
        else:
            story.append(_paragraph(fragment, body))
            story.append(Spacer(1, 4))

    if not story:
        story.append(Paragraph("(empty)", body))

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=rl_letter,
        leftMargin=50,
        rightMargin=50,
        topMargin=45,
        bottomMargin=45,
        title=title,
    )
    doc.build(story)
    return buf.getvalue()
