"""Excel workbook as a seller :class:`~cnpjsync.store.RecordStore`.

One seller per row; columns are configurable through a mapping of
``StoredSeller`` field names to column letters.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from datetime import datetime, timezone
from pathlib import Path
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from .errors import SellerNotFound
from .registry_id import CNPJ_LENGTH
from .store import StoredSeller, check_patch
from .utils.logging_setup import setup_logger

_BASE_LOGGER = setup_logger()
LOGGER = _BASE_LOGGER.getChild("excel_store")

DEFAULT_MAPPING: dict[str, str] = {
    "id": "A",
    "registry_id": "B",
    "legal_name": "C",
    "email": "D",
    "phone": "E",
    "address": "F",
    "created_at": "G",
    "updated_at": "H",
}

_REQUIRED_COLUMNS = ("id", "registry_id")


def _normalise_column(column: str | None) -> str | None:
    if column is None:
        return None
    column = column.strip().upper()
    return column or None


def validate_column(column: str | None) -> str | None:
    column = _normalise_column(column)
    if column is None:
        return None
    if not column.isalpha():
        raise ValueError(f"Coluna inválida: {column}")
    return column


def _cell_to_string(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value_str = str(int(value))
    elif isinstance(value, str):
        value_str = value.strip()
    else:
        value_str = str(value).strip()
    return value_str or None


def _cell_to_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = _cell_to_string(value)
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        LOGGER.debug("Data ignorada (formato desconhecido): %s", text)
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExcelRecordStore:
    """Seller records stored in one worksheet; call :meth:`save` to persist."""

    def __init__(
        self,
        excel_path: str | Path,
        *,
        sheet: str | None = None,
        mapping: Mapping[str, str] | None = None,
        header_rows: int = 1,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.excel_path = Path(excel_path)
        self.sheet = sheet
        self.header_rows = header_rows
        self._clock = clock
        self.mapping = self._build_mapping(mapping)

        LOGGER.debug("Carregando planilha: %s", self.excel_path)
        try:
            self._workbook: Workbook = load_workbook(self.excel_path)
        except (InvalidFileException, BadZipFile) as exc:
            raise ValueError(f"Planilha ilegível: {self.excel_path}: {exc}") from exc
        self._worksheet = self._get_worksheet(self._workbook, sheet)
        self._rows_by_id = self._index_rows()

    @staticmethod
    def _build_mapping(mapping: Mapping[str, str] | None) -> dict[str, str]:
        merged = dict(DEFAULT_MAPPING)
        for key, value in (mapping or {}).items():
            if key not in DEFAULT_MAPPING:
                raise ValueError(f"Campo desconhecido no mapeamento: {key}")
            column = validate_column(value)
            if column is not None:
                merged[key] = column
            elif key in _REQUIRED_COLUMNS:
                raise ValueError(f"Coluna obrigatória sem mapeamento: {key}")
            else:
                merged.pop(key, None)
        return merged

    @staticmethod
    def _get_worksheet(workbook: Workbook, sheet: str | None) -> Worksheet:
        if sheet:
            try:
                return workbook[sheet]
            except KeyError as exc:
                raise ValueError(f"Planilha '{sheet}' não encontrada") from exc
        return workbook.active

    def _read(self, field: str, row_index: int) -> object:
        column = self.mapping.get(field)
        if not column:
            return None
        return self._worksheet[f"{column}{row_index}"].value

    def _index_rows(self) -> dict[str, int]:
        rows: dict[str, int] = {}
        for row_index in range(self.header_rows + 1, self._worksheet.max_row + 1):
            seller_id = _cell_to_string(self._read("id", row_index))
            if seller_id is None:
                continue
            if seller_id in rows:
                LOGGER.warning(
                    "ID duplicado %s na linha %s, mantendo a linha %s",
                    seller_id,
                    row_index,
                    rows[seller_id],
                )
                continue
            rows[seller_id] = row_index
        LOGGER.info(
            "Planilha '%s' (%s): %s vendedores",
            self._worksheet.title,
            self.excel_path,
            len(rows),
        )
        return rows

    def _seller_at(self, seller_id: str, row_index: int) -> StoredSeller:
        def text(field: str) -> str:
            return _cell_to_string(self._read(field, row_index)) or ""

        registry_id = text("registry_id")
        if isinstance(self._read("registry_id", row_index), (int, float)):
            # Numeric cells lose the leading zeros of a CNPJ.
            registry_id = registry_id.zfill(CNPJ_LENGTH)

        created_at = _cell_to_datetime(self._read("created_at", row_index)) or _utcnow()
        updated_at = _cell_to_datetime(self._read("updated_at", row_index)) or created_at
        return StoredSeller(
            id=seller_id,
            registry_id=registry_id,
            legal_name=text("legal_name"),
            email=text("email"),
            phone=text("phone"),
            address=text("address"),
            created_at=created_at,
            updated_at=updated_at,
        )

    def _iter_sellers(self) -> Iterator[StoredSeller]:
        for seller_id, row_index in self._rows_by_id.items():
            yield self._seller_at(seller_id, row_index)

    def find_all(self) -> list[StoredSeller]:
        return list(self._iter_sellers())

    def find_by_address_sentinel(self, value: str) -> list[StoredSeller]:
        return [seller for seller in self._iter_sellers() if seller.address == value]

    def find_by_id(self, seller_id: str) -> StoredSeller:
        row_index = self._rows_by_id.get(str(seller_id))
        if row_index is None:
            raise SellerNotFound(f"Vendedor com ID {seller_id} não encontrado")
        return self._seller_at(str(seller_id), row_index)

    def update(self, seller_id: str, patch: Mapping[str, str]) -> StoredSeller:
        row_index = self._rows_by_id.get(str(seller_id))
        if row_index is None:
            raise SellerNotFound(f"Vendedor com ID {seller_id} não encontrado")

        values = check_patch(patch)
        for field, value in values.items():
            column = self.mapping.get(field)
            if column:
                self._worksheet[f"{column}{row_index}"] = value
        updated_column = self.mapping.get("updated_at")
        if updated_column:
            self._worksheet[f"{updated_column}{row_index}"] = self._clock().isoformat()

        LOGGER.debug("Gravando linha %s (vendedor %s): %s", row_index, seller_id, sorted(values))
        return self._seller_at(str(seller_id), row_index)

    def save(self) -> None:
        LOGGER.info("Salvando planilha: %s", self.excel_path)
        self._workbook.save(self.excel_path)
