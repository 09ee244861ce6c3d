from __future__ import annotations  # Styled PDF rendering for graded sessions

from datetime import datetime
from typing import Any, List, Sequence, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from storage.models import TranscriptEntry

from .models import ResultReport

DEJAVU_SANS = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"  # System font
DEJAVU_SANS_BOLD = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"  # System font

ACCENT = (45, 115, 245)  # Palette accent
TEXT = (34, 34, 34)  # Primary text color
MUTED = (100, 100, 100)  # Secondary text color
RULE = (230, 230, 230)  # Divider color
SOFT_ACCENT_BG = (243, 248, 255)  # Highlight background

LATIN1_FALLBACKS = (
    ("\u2022", "-"),
    ("\u2026", "..."),
    ("\u2018", "'"),
    ("\u2019", "'"),
    ("\u201c", '"'),
    ("\u201d", '"'),
    ("\u2013", "-"),
    ("\u2014", "-"),
)  # Typographic characters core fonts cannot encode

SCORE_ROWS = (
    ("Overall", "overall_score"),
    ("Technical", "technical_score"),
    ("Communication", "communication_score"),
    ("Problem Solving", "problem_solving_score"),
    ("Confidence", "confidence_score"),
)


def _parse_datetime(value: str | None) -> datetime | None:  # Parse ISO timestamp safely
    if not value:
        return None
    try:
        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _format_datetime(value: str | None) -> str:
    parsed = _parse_datetime(value)
    if not parsed:
        return "-"
    return parsed.strftime("%d %b %Y, %I:%M %p")


def _effective_width(pdf: FPDF) -> float:
    return float(pdf.w) - float(pdf.l_margin) - float(pdf.r_margin)


def _score_label(score: float) -> str:
    if score >= 8.0:
        return "Excellent"
    if score >= 6.0:
        return "Good"
    if score >= 4.0:
        return "Fair"
    return "Needs work"


class ReportPDF(FPDF):  # PDF with banner header and paginated footer
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.header_title = "Interview Result"
        self.font_regular = "Helvetica"
        self.font_bold = "Helvetica"
        self.supports_unicode = False

    def use_unicode_fonts(self) -> None:
        try:
            self.add_font("DejaVu", "", DEJAVU_SANS)
            self.add_font("DejaVu", "B", DEJAVU_SANS_BOLD)
        except (OSError, RuntimeError):
            return
        self.font_regular = "DejaVu"
        self.font_bold = "DejaVu"
        self.supports_unicode = True

    def clean(self, text: Any) -> str:  # Keep text encodable by core fonts
        value = "" if text is None else str(text)
        if self.supports_unicode:
            return value
        for src, dst in LATIN1_FALLBACKS:
            value = value.replace(src, dst)
        return value.encode("latin-1", "ignore").decode("latin-1")

    def header(self) -> None:
        usable = _effective_width(self)
        if self.page_no() == 1:
            self.set_fill_color(*ACCENT)
            self.rect(0, 0, self.w, 20, style="F")
            self.set_text_color(255, 255, 255)
            self.set_font(self.font_bold, "B", 16)
            self.set_xy(self.l_margin, 6)
            self.cell(usable, 8, self.clean(self.header_title))
            self.set_text_color(*TEXT)
            self.set_y(26)
            return
        self.set_text_color(80, 80, 80)
        self.set_xy(self.l_margin, 8)
        self.set_font(self.font_bold, "B", 12)
        self.cell(usable, 6, self.clean(self.header_title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        mark = self.get_y()
        self.set_draw_color(*ACCENT)
        self.set_line_width(0.4)
        self.line(self.l_margin, mark + 1, self.w - self.r_margin, mark + 1)
        self.set_text_color(*TEXT)
        self.ln(4)

    def footer(self) -> None:
        self.set_y(-12)
        self.set_draw_color(*RULE)
        self.set_line_width(0.2)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.set_text_color(120, 120, 120)
        self.set_font(self.font_regular, "", 9)
        self.cell(0, 10, f"Page {self.page_no()}/{{nb}}", align="R")


def _section_title(pdf: ReportPDF, title: str) -> None:
    pdf.set_text_color(*TEXT)
    pdf.set_x(pdf.l_margin)
    pdf.set_font(pdf.font_bold, "B", 13)
    pdf.cell(0, 9, pdf.clean(title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_draw_color(*RULE)
    pdf.set_line_width(0.2)
    y = pdf.get_y()
    pdf.line(pdf.l_margin, y, pdf.l_margin + _effective_width(pdf), y)
    pdf.ln(2)


def _meta_block(pdf: ReportPDF, rows: List[Tuple[str, str]]) -> None:  # Two-column label/value grid
    col = _effective_width(pdf) / 2.0
    for idx in range(0, len(rows), 2):
        left = rows[idx]
        right = rows[idx + 1] if idx + 1 < len(rows) else ("", "")
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.cell(col, 6, pdf.clean(left[0]), new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, 6, pdf.clean(right[0]), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_text_color(*TEXT)
        pdf.set_font(pdf.font_bold, "B", 11)
        pdf.cell(col, 6, pdf.clean(left[1]), new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, 6, pdf.clean(right[1]), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _score_table(pdf: ReportPDF, report: ResultReport) -> None:
    widths = [_effective_width(pdf) * 0.45, _effective_width(pdf) * 0.25, _effective_width(pdf) * 0.30]
    pdf.set_x(pdf.l_margin)
    pdf.set_fill_color(*ACCENT)
    pdf.set_text_color(255, 255, 255)
    pdf.set_font(pdf.font_bold, "B", 10)
    for width, title in zip(widths, ("Dimension", "Score", "Rating")):
        pdf.cell(width, 8, title, fill=True)
    pdf.ln(8)
    pdf.set_text_color(*TEXT)
    pdf.set_font(pdf.font_regular, "", 10)
    for idx, (label, field) in enumerate(SCORE_ROWS):
        score = float(getattr(report.result, field))
        fill = idx % 2 == 0
        if fill:
            pdf.set_fill_color(247, 250, 255)
        pdf.set_x(pdf.l_margin)
        pdf.cell(widths[0], 7, label, fill=fill)
        pdf.cell(widths[1], 7, f"{score:.1f}/10", fill=fill)
        pdf.cell(widths[2], 7, _score_label(score), fill=fill)
        pdf.ln(7)
    pdf.ln(3)


def _bullets(pdf: ReportPDF, items: Sequence[str], empty: str) -> None:
    bullet = "\u2022" if pdf.supports_unicode else "-"
    pdf.set_x(pdf.l_margin)
    if not items:
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.multi_cell(_effective_width(pdf), 6, pdf.clean(empty), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_text_color(*TEXT)
        pdf.ln(2)
        return
    pdf.set_text_color(*TEXT)
    pdf.set_font(pdf.font_regular, "", 11)
    for item in items:
        pdf.multi_cell(_effective_width(pdf), 6, pdf.clean(f"{bullet} {item}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _transcript_row(pdf: ReportPDF, index: int, entry: TranscriptEntry) -> None:
    width = _effective_width(pdf)
    pdf.set_x(pdf.l_margin)
    pdf.set_text_color(*ACCENT)
    pdf.set_font(pdf.font_bold, "B", 10)
    header = f"Q{index} ({entry.question_type}): {entry.question}"
    pdf.multi_cell(width, 5.5, pdf.clean(header), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_text_color(*(MUTED if entry.is_no_answer else (60, 60, 60)))
    pdf.set_font(pdf.font_regular, "", 10)
    pdf.multi_cell(width, 5.5, pdf.clean(f"A: {entry.answer}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    y = pdf.get_y() + 1
    pdf.set_draw_color(*RULE)
    pdf.line(pdf.l_margin, y, pdf.l_margin + width, y)
    pdf.set_y(y + 3)
    pdf.set_text_color(*TEXT)


def generate_result_pdf(report: ResultReport) -> bytes:  # Build PDF payload for a graded session
    pdf = ReportPDF()
    pdf.use_unicode_fonts()
    pdf.alias_nb_pages()
    session = report.session
    result = report.result
    pdf.header_title = f"{session.role_title} - Interview Result"
    pdf.set_margins(15, 22, 15)
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    _section_title(pdf, "Session Overview")
    _meta_block(
        pdf,
        [
            ("Session ID", session.id),
            ("Candidate ID", session.candidate_id),
            ("Role", session.role_title),
            ("Difficulty", session.difficulty.title()),
            ("Status", session.status.title()),
            ("Questions Answered", f"{result.answers_evaluated} of {session.total_questions}"),
            ("Started", _format_datetime(session.started_at)),
            ("Ended", _format_datetime(session.ended_at)),
        ],
    )

    if result.is_placeholder:
        pdf.set_x(pdf.l_margin)
        pdf.set_fill_color(*SOFT_ACCENT_BG)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.multi_cell(
            _effective_width(pdf),
            6,
            "Automatic scoring was unavailable; scores below are placeholders.",
            fill=True,
            new_x=XPos.LMARGIN,
            new_y=YPos.NEXT,
        )
        pdf.ln(2)

    _section_title(pdf, "Scores")
    _score_table(pdf, report)

    _section_title(pdf, "Strengths")
    _bullets(pdf, result.strengths, "No strengths recorded.")

    _section_title(pdf, "Areas for Improvement")
    _bullets(pdf, result.improvement_areas, "No improvement areas recorded.")

    _section_title(pdf, "Summary")
    pdf.set_x(pdf.l_margin)
    pdf.set_font(pdf.font_regular, "", 11)
    pdf.multi_cell(_effective_width(pdf), 6, pdf.clean(result.summary or "-"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(3)

    _section_title(pdf, "Question & Answer Transcript")
    if not report.transcript:
        _bullets(pdf, [], "No answers recorded for this session.")
    for position, entry in enumerate(report.transcript, start=1):
        _transcript_row(pdf, position, entry)

    return bytes(pdf.output())


__all__ = ["generate_result_pdf"]
