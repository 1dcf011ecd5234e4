"""Google Sheets / Drive implementation of the sheet store contract.

Documents are spreadsheets addressed by their file id, collections are Drive
folders addressed by URL.  Reads use ``spreadsheets.values.get`` once per
worksheet; ``Worksheet.save`` replays pending row insertions as
``insertDimension`` requests, grows the grid when appended rows fall past
its last row, and writes every changed row with a single
``values.batchUpdate`` call.  Cells are written with ``RAW`` input so string
values are stored literally and never reinterpreted as numbers or formulas.

Every ``HttpError`` is translated: HTTP 404 becomes
:class:`~sheetmaster.errors.NotFoundError`, anything else
:class:`~sheetmaster.errors.StoreError`.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from googleapiclient.errors import HttpError

from sheetmaster.errors import NotFoundError, StoreError
from sheetmaster.session import Session
from sheetmaster.store import Row, is_blank

logger = logging.getLogger(__name__)

__all__ = [
    "GoogleSheetStore",
    "GoogleDocument",
    "GoogleWorksheet",
    "GoogleCollection",
    "FOLDER_MIME_TYPE",
    "SPREADSHEET_MIME_TYPE",
    "parse_spreadsheet_id",
    "parse_folder_id",
]

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"
MAX_BATCH_CELLS = 1_000

_SIMPLE_TITLE_RE = re.compile(r"^[A-Za-z0-9_]+$")
_FOLDER_URL_RE = re.compile(r"/folders/([A-Za-z0-9_-]+)")
_ID_PARAM_RE = re.compile(r"[?&]id=([A-Za-z0-9_-]+)")


# ---------------------------------------------------------------------------
# General helpers
# ---------------------------------------------------------------------------
def parse_spreadsheet_id(value: str) -> str:
    """Normalise a spreadsheet identifier from raw input or URL."""

    if not value:
        return ""
    value = value.strip()
    if "/spreadsheets/d/" in value:
        value = value.split("/spreadsheets/d/", 1)[1]
        value = value.split("/", 1)[0]
    if "?" in value:
        value = value.split("?", 1)[0]
    if "#" in value:
        value = value.split("#", 1)[0]
    return value


def parse_folder_id(url: str) -> str:
    """Return the Drive folder id referenced by ``url``."""

    value = (url or "").strip()
    match = _FOLDER_URL_RE.search(value) or _ID_PARAM_RE.search(value)
    if match:
        return match.group(1)
    if "/" in value or not value:
        raise NotFoundError(f"Not a Drive folder URL: {url!r}")
    return value


def _column_letter(index: int) -> str:
    if index < 1:
        raise ValueError("Column index must be >= 1")
    letters: List[str] = []
    while index:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(65 + remainder))
    return "".join(reversed(letters))


def _quote_title(title: str) -> str:
    """Return a worksheet title safely formatted for A1 notation."""

    normalised = (title or "").strip()
    if _SIMPLE_TITLE_RE.fullmatch(normalised):
        return normalised
    escaped = normalised.replace("'", "''")
    return f"'{escaped}'"


def _sheet_range(title: str) -> str:
    """Return the whole-sheet range for ``title``.

    Always quoted: a bare title such as ``Q1`` is read as a cell reference.
    """

    escaped = (title or "").strip().replace("'", "''")
    return f"'{escaped}'"


def _a1_range(title: str, range_spec: str) -> str:
    return f"{_quote_title(title)}!{range_spec}"


def _http_status(exc: HttpError) -> int:
    status = getattr(exc, "status_code", None)
    if status is not None:
        try:
            return int(status)
        except (TypeError, ValueError):
            return 0
    resp = getattr(exc, "resp", None)
    if resp is not None:
        try:
            return int(getattr(resp, "status", 0))
        except (TypeError, ValueError):
            return 0
    return 0


def _execute(request, description: str) -> Dict[str, Any]:
    try:
        result = request.execute()
    except HttpError as exc:
        if _http_status(exc) == 404:
            raise NotFoundError(f"{description}: not found") from exc
        raise StoreError(f"{description} failed: {exc}") from exc
    return result if isinstance(result, dict) else {}


def _chunk_rows(
    start: int, matrix: Sequence[List[str]], max_cells: int = MAX_BATCH_CELLS
) -> Iterator[Tuple[int, List[List[str]]]]:
    if not matrix:
        return
    column_count = max(len(row) for row in matrix) or 1
    rows_per_chunk = max(1, max_cells // column_count)
    for offset in range(0, len(matrix), rows_per_chunk):
        yield start + offset, [list(row) for row in matrix[offset : offset + rows_per_chunk]]


def _consecutive_runs(indexes: Sequence[int]) -> Iterator[List[int]]:
    run: List[int] = []
    for index in indexes:
        if run and index != run[-1] + 1:
            yield run
            run = []
        run.append(index)
    if run:
        yield run


# ---------------------------------------------------------------------------
# Worksheets
# ---------------------------------------------------------------------------
class GoogleWorksheet:
    """A worksheet loaded into memory with pending-change tracking."""

    def __init__(
        self,
        session: Session,
        spreadsheet_id: str,
        title: str,
        sheet_id: Optional[int],
        row_count: int,
        values: Sequence[Sequence[Any]],
    ) -> None:
        self._session = session
        self.spreadsheet_id = spreadsheet_id
        self.title = title
        self.sheet_id = sheet_id
        self._row_count = row_count
        matrix = [["" if cell is None else str(cell) for cell in row] for row in values]
        self._header: List[str] = matrix[0] if matrix else []
        self._columns = self._column_positions(self._header)
        self._rows: List[Row] = []
        self._raw: List[List[str]] = []
        for raw in matrix[1:]:
            cells = {name: raw[pos] if pos < len(raw) else "" for name, pos in self._columns.items()}
            self._rows.append(Row(values=cells))
            self._raw.append(list(raw))
        self._pending_inserts: List[int] = []

    @staticmethod
    def _column_positions(header: Sequence[str]) -> Dict[str, int]:
        positions: Dict[str, int] = {}
        for position, name in enumerate(header):
            if not is_blank(name):
                positions.setdefault(name, position)
        return positions

    def header(self) -> List[str]:
        return list(self._header)

    def populated_rows(self) -> List[Row]:
        return [row for row in self._rows if row.is_populated()]

    def append_row(self, at_offset: Optional[int] = None) -> Row:
        row = Row(dirty=True)
        if at_offset is not None and 0 < at_offset <= len(self._rows):
            index = at_offset - 1
            self._rows.insert(index, row)
            self._raw.insert(index, [])
            self._pending_inserts.append(index + 1)
        else:
            self._rows.append(row)
            self._raw.append([])
        return row

    def _row_vector(self, index: int) -> List[str]:
        row = self._rows[index]
        vector = list(self._raw[index])
        width = max(len(self._header), len(vector))
        vector.extend([""] * (width - len(vector)))
        for name, position in self._columns.items():
            vector[position] = row.get(name)
        return vector

    def _structure_requests(self) -> List[Mapping[str, Any]]:
        requests: List[Mapping[str, Any]] = []
        row_count = self._row_count
        for grid_index in self._pending_inserts:
            requests.append(
                {
                    "insertDimension": {
                        "range": {
                            "sheetId": self.sheet_id,
                            "dimension": "ROWS",
                            "startIndex": grid_index,
                            "endIndex": grid_index + 1,
                        },
                        "inheritFromBefore": grid_index > 1,
                    }
                }
            )
            row_count += 1
        needed = len(self._rows) + 1
        if needed > row_count:
            requests.append(
                {
                    "appendDimension": {
                        "sheetId": self.sheet_id,
                        "dimension": "ROWS",
                        "length": needed - row_count,
                    }
                }
            )
            row_count = needed
        self._row_count = row_count
        return requests

    def save(self) -> None:
        """Flush inserted, appended and modified rows to the spreadsheet."""

        requests = self._structure_requests()
        if requests:
            _execute(
                self._session.sheets.spreadsheets().batchUpdate(
                    spreadsheetId=self.spreadsheet_id, body={"requests": requests}
                ),
                f"Resizing worksheet {self.title!r}",
            )
            self._pending_inserts = []

        dirty = [index for index, row in enumerate(self._rows) if row.dirty]
        if not dirty:
            return

        data: List[Dict[str, Any]] = []
        for run in _consecutive_runs(dirty):
            matrix = [self._row_vector(index) for index in run]
            for start, chunk in _chunk_rows(run[0] + 2, matrix):
                end_column = _column_letter(max(len(row) for row in chunk) or 1)
                end_row = start + len(chunk) - 1
                data.append(
                    {
                        "range": _a1_range(self.title, f"A{start}:{end_column}{end_row}"),
                        "values": chunk,
                    }
                )

        _execute(
            self._session.sheets.spreadsheets()
            .values()
            .batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"valueInputOption": "RAW", "data": data},
            ),
            f"Saving worksheet {self.title!r}",
        )
        for index in dirty:
            self._raw[index] = self._row_vector(index)
            self._rows[index].dirty = False
        logger.debug("[Store] %s: wrote %s rows", self.title, len(dirty))


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------
class GoogleDocument:
    def __init__(self, store: "GoogleSheetStore", key: str, metadata: Mapping[str, Any]) -> None:
        self._store = store
        self.key = key
        properties = metadata.get("properties", {}) or {}
        self.title: str = str(properties.get("title", ""))
        self._sheets: Dict[str, Mapping[str, Any]] = {}
        for sheet in metadata.get("sheets", []) or []:
            props = sheet.get("properties", {}) if isinstance(sheet, Mapping) else {}
            title = props.get("title")
            if isinstance(title, str):
                self._sheets[title] = props
        self._worksheets: Dict[str, GoogleWorksheet] = {}

    @property
    def url(self) -> str:
        return f"https://docs.google.com/spreadsheets/d/{self.key}/edit"

    def worksheet_titles(self) -> List[str]:
        return list(self._sheets)

    def worksheet(self, title: str) -> GoogleWorksheet:
        if title in self._worksheets:
            return self._worksheets[title]
        props = self._sheets.get(title)
        if props is None:
            raise NotFoundError(f"Worksheet {title!r} not found in document {self.key}")
        result = _execute(
            self._store.session.sheets.spreadsheets()
            .values()
            .get(spreadsheetId=self.key, range=_sheet_range(title), majorDimension="ROWS"),
            f"Reading worksheet {title!r} of {self.key}",
        )
        grid = props.get("gridProperties", {}) or {}
        values = result.get("values", [])
        worksheet = GoogleWorksheet(
            self._store.session,
            self.key,
            title,
            props.get("sheetId"),
            int(grid.get("rowCount", len(values))),
            values,
        )
        self._worksheets[title] = worksheet
        return worksheet

    def duplicate(self, new_title: Optional[str] = None, into=None) -> "GoogleDocument":
        """Copy this spreadsheet; ``into`` places the copy in that folder."""

        body: Dict[str, Any] = {"name": new_title or self.title}
        if into is not None:
            body["parents"] = [into.key]
        created = _execute(
            self._store.session.drive.files().copy(
                fileId=self.key, body=body, fields="id, name", supportsAllDrives=True
            ),
            f"Duplicating document {self.key}",
        )
        logger.info("[Store] Duplicated %s -> %s", self.key, created.get("id"))
        return self._store.resolve_document(created["id"])


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------
class GoogleCollection:
    def __init__(self, store: "GoogleSheetStore", key: str, title: str) -> None:
        self._store = store
        self.key = key
        self.title = title

    @property
    def url(self) -> str:
        return f"https://drive.google.com/drive/folders/{self.key}"

    @property
    def _files(self):
        return self._store.session.drive.files()

    def create_subcollection(self, title: str) -> "GoogleCollection":
        metadata = {"name": title, "mimeType": FOLDER_MIME_TYPE, "parents": [self.key]}
        created = _execute(
            self._files.create(body=metadata, fields="id, name", supportsAllDrives=True),
            f"Creating folder {title!r}",
        )
        logger.info("[Store] Created folder %s (%s)", title, created.get("id"))
        return GoogleCollection(self._store, created["id"], created.get("name", title))

    def add(self, document) -> None:
        """Move ``document`` into this folder."""

        current = _execute(
            self._files.get(fileId=document.key, fields="parents", supportsAllDrives=True),
            f"Reading parents of {document.key}",
        )
        previous = [parent for parent in current.get("parents", []) if parent != self.key]
        options: Dict[str, Any] = {"addParents": self.key}
        if previous:
            options["removeParents"] = ",".join(previous)
        _execute(
            self._files.update(
                fileId=document.key, fields="id, parents", supportsAllDrives=True, **options
            ),
            f"Adding {document.key} to folder {self.key}",
        )

    def remove(self, document) -> None:
        _execute(
            self._files.update(
                fileId=document.key,
                removeParents=self.key,
                fields="id, parents",
                supportsAllDrives=True,
            ),
            f"Removing {document.key} from folder {self.key}",
        )

    def delete(self) -> None:
        """Delete the folder together with every file it contains."""

        _execute(
            self._files.delete(fileId=self.key, supportsAllDrives=True),
            f"Deleting folder {self.key}",
        )
        logger.info("[Store] Deleted folder %s", self.key)

    def documents(self) -> List[str]:
        query = " and ".join(
            [
                f"'{self.key}' in parents",
                "trashed = false",
                f"mimeType = '{SPREADSHEET_MIME_TYPE}'",
            ]
        )
        keys: List[str] = []
        page_token: Optional[str] = None
        while True:
            response = _execute(
                self._files.list(
                    q=query,
                    spaces="drive",
                    fields="nextPageToken, files(id, name)",
                    pageToken=page_token,
                    supportsAllDrives=True,
                    includeItemsFromAllDrives=True,
                ),
                f"Listing folder {self.key}",
            )
            keys.extend(item["id"] for item in response.get("files", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
        return keys


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
class GoogleSheetStore:
    """Resolve spreadsheets and Drive folders through an explicit session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def resolve_document(self, key: str) -> GoogleDocument:
        spreadsheet_id = parse_spreadsheet_id(key)
        if not spreadsheet_id:
            raise NotFoundError("Spreadsheet key is empty")
        metadata = _execute(
            self.session.sheets.spreadsheets().get(
                spreadsheetId=spreadsheet_id,
                includeGridData=False,
                fields="spreadsheetId,properties.title,sheets.properties",
            ),
            f"Opening spreadsheet {spreadsheet_id}",
        )
        return GoogleDocument(self, spreadsheet_id, metadata)

    def resolve_collection(self, url: str) -> GoogleCollection:
        folder_id = parse_folder_id(url)
        metadata = _execute(
            self.session.drive.files().get(
                fileId=folder_id, fields="id, name, mimeType", supportsAllDrives=True
            ),
            f"Opening folder {folder_id}",
        )
        if metadata.get("mimeType") != FOLDER_MIME_TYPE:
            raise NotFoundError(f"{url!r} is not a Drive folder")
        return GoogleCollection(self, metadata.get("id", folder_id), metadata.get("name", ""))
