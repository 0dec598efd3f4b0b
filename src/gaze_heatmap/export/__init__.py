from .encode import (
    PDF_MIME,
    PNG_MIME,
    build_pdf_report,
    encode_png,
    export_filename,
    report_header,
)
from .sinks import ExportSink, FileExportSink, HTTPExportSink

__all__ = [
    "PDF_MIME",
    "PNG_MIME",
    "ExportSink",
    "FileExportSink",
    "HTTPExportSink",
    "build_pdf_report",
    "encode_png",
    "export_filename",
    "report_header",
]
