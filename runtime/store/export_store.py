"""ExportStore: writes rendered COMPAS reports under the runtime data dir.

Expected layout (by convention):

    <data_dir>/exports/compas-report-<session_id>-<timestamp>.<ext>

Supported formats:

    markdown -> .md   (core.compas.report.render_markdown)
    json     -> .json (core.compas.report.render_json_text)

PDF and DOCX rendering are left to external renderers, which can consume
either of these files.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from core.compas.report import render_json_text, render_markdown
from exceptions.exceptions import UnsupportedExportFormat

from ..models.session_models import Session


# format -> (file extension, media type, renderer)
EXPORT_FORMATS: Dict[str, Tuple[str, str, Callable[[Session], str]]] = {
    "markdown": ("md", "text/markdown", render_markdown),
    "json": ("json", "application/json", render_json_text),
}


@dataclass
class ExportResult:
    filename: str
    path: Path
    media_type: str
    content: str


class ExportStore:
    """Render and persist report exports.

    Parameters
    ----------
    data_dir:
        Base runtime data directory; files go to `<data_dir>/exports`.
    """

    def __init__(self, data_dir: str = "runtime/data") -> None:
        self.data_dir = Path(data_dir)

    @property
    def exports_dir(self) -> Path:
        return self.data_dir / "exports"

    @staticmethod
    def supported_formats() -> List[str]:
        return list(EXPORT_FORMATS)

    def export(self, session: Session, export_format: str) -> ExportResult:
        """Render `session` in `export_format` and write it to disk.

        Raises
        ------
        UnsupportedExportFormat
            If the format is not one of EXPORT_FORMATS.
        """
        if export_format not in EXPORT_FORMATS:
            raise UnsupportedExportFormat(export_format, EXPORT_FORMATS)

        extension, media_type, renderer = EXPORT_FORMATS[export_format]
        content = renderer(session)

        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        filename = f"compas-report-{session.session_id}-{stamp}.{extension}"
        self.exports_dir.mkdir(parents=True, exist_ok=True)
        path = self.exports_dir / filename
        with path.open("w", encoding="utf-8") as f:
            f.write(content)

        return ExportResult(
            filename=filename,
            path=path,
            media_type=media_type,
            content=content,
        )

    def list_exports(self, session_id: str) -> List[Path]:
        """Return the export files written for a session, oldest first."""
        if not self.exports_dir.is_dir():
            return []
        return sorted(self.exports_dir.glob(f"compas-report-{session_id}-*"))
