from __future__ import annotations  # Session report package exports

from .models import ResultReport, load_report
from .pdf import generate_result_pdf

__all__ = ["ResultReport", "generate_result_pdf", "load_report"]
