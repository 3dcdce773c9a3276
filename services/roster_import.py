"""Roster spreadsheet parsing for candidate invitations (xlsx or csv)"""
import csv
import io
import re
from typing import Dict, List, Any

from openpyxl import Workbook, load_workbook

EMAIL_REGEX = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

NAME_COLUMNS = ['name', 'Name', 'NAME', 'Full Name', 'fullName']
EMAIL_COLUMNS = ['email', 'Email', 'EMAIL']

TEMPLATE_ROWS = [
    {"name": "John Doe", "email": "john.doe@example.com"},
    {"name": "Jane Smith", "email": "jane.smith@example.com"},
    {"name": "Bob Johnson", "email": "bob.johnson@example.com"},
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class RosterFileError(ValueError):
    """Raised when an uploaded roster cannot be read"""


def _cell_to_str(value) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def read_roster_rows(filename: str, content: bytes) -> List[Dict[str, str]]:
    """Read the first sheet of an upload into header-keyed rows, skipping blank rows"""
    name = (filename or '').lower()
    
    if name.endswith('.csv'):
        try:
            text = content.decode('utf-8-sig')
        except UnicodeDecodeError:
            raise RosterFileError("CSV file must be UTF-8 encoded")
        reader = csv.DictReader(io.StringIO(text))
        rows = []
        for row in reader:
            cleaned = {(k or '').strip(): (v or '') for k, v in row.items() if k}
            if any(str(v).strip() for v in cleaned.values()):
                rows.append(cleaned)
        return rows
    
    if name.endswith('.xlsx') or name.endswith('.xlsm'):
        try:
            workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except Exception as e:
            raise RosterFileError(f"Could not read spreadsheet: {str(e)}")
        try:
            sheet = workbook.worksheets[0]
            values = list(sheet.iter_rows(values_only=True))
        finally:
            workbook.close()
        
        if not values:
            return []
        header = [_cell_to_str(h).strip() for h in values[0]]
        rows = []
        for raw in values[1:]:
            cells = [_cell_to_str(v) for v in raw]
            if not any(c.strip() for c in cells):
                continue
            rows.append({header[i]: cells[i] for i in range(min(len(header), len(cells))) if header[i]})
        return rows
    
    raise RosterFileError("Unsupported file type. Upload an .xlsx or .csv file")


def _first_present(row: Dict[str, str], columns: List[str]) -> str:
    for column in columns:
        value = row.get(column)
        if value and str(value).strip():
            return str(value)
    return ''


def validate_roster_rows(rows: List[Dict[str, str]]) -> Dict[str, Any]:
    """
    Extract name/email pairs from roster rows.
    
    Row numbers in errors match the spreadsheet: the header is row 1, so the
    first data row is row 2.
    """
    candidates = []
    errors = []
    
    for i, row in enumerate(rows):
        name = _first_present(row, NAME_COLUMNS).strip()
        email = _first_present(row, EMAIL_COLUMNS).lower().strip()
        
        if not name or not email:
            errors.append({
                "row": i + 2,
                "reason": "Missing name or email",
                "data": row
            })
            continue
        
        if not EMAIL_REGEX.match(email):
            errors.append({
                "row": i + 2,
                "reason": "Invalid email format",
                "email": email
            })
            continue
        
        candidates.append({"name": name, "email": email})
    
    return {"candidates": candidates, "errors": errors}


def build_template_workbook() -> bytes:
    """Sample xlsx with the columns the importer understands"""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Candidates"
    sheet.append(["name", "email"])
    for row in TEMPLATE_ROWS:
        sheet.append([row["name"], row["email"]])
    
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
