"""CSV upload pipeline.

Turns an uploaded CSV file into product inserts: parse, validate each row,
then submit the valid ones to the store one at a time, checking for an
existing model number before every insert. Per-row problems never stop the
batch; the upload is aborted only when there is nothing to submit.
"""

import csv
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from deals.config import AFFILIATE_ID
from deals.csv_utils import (
    build_row,
    normalize_headers,
    parse_csv_line,
    row_to_record,
    split_lines,
    validate_row,
)
from deals.logging_config import get_logger, log_deal_event
from deals.models import LogEntry, ProductRecord, RowOutcome, RowResult, UploadStats
from deals.store import DealStore, StoreError
from deals.url_validation import URLValidationError

__all__ = [
    "ImportState",
    "ImportAborted",
    "ImportLog",
    "ImportReport",
    "CsvImporter",
]

logger = get_logger("importer")


class ImportState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    PARSING_HEADER = "parsing_header"
    PARSING_ROWS = "parsing_rows"
    SUBMITTING = "submitting"
    DONE = "done"
    ABORTED = "aborted"


class ImportAborted(Exception):
    """The upload stopped before any row was submitted."""
    pass


class ImportLog:
    """Timestamped info/error lines for one upload session.

    Entries are mirrored to the ``deals.importer`` logger as they are added.
    """

    def __init__(self):
        self.entries: List[LogEntry] = []

    def add(self, message: str, level: str = "info") -> LogEntry:
        entry = LogEntry(message=message, level=level)
        self.entries.append(entry)
        if level == "error":
            logger.error(message)
        else:
            logger.info(message)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.add(message, "info")

    def error(self, message: str) -> LogEntry:
        return self.add(message, "error")

    def errors(self) -> List[str]:
        return [e.message for e in self.entries if e.level == "error"]

    def to_text(self) -> str:
        """Render the log for download, one ``[timestamp] LEVEL: message`` per line."""
        return "\n".join(
            f"[{e.timestamp}] {e.level.upper()}: {e.message}" for e in self.entries
        )

    def clear(self) -> None:
        self.entries.clear()

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class ImportReport:
    """Outcome of one upload."""

    state: ImportState = ImportState.IDLE
    stats: UploadStats = field(default_factory=UploadStats)
    errors: List[str] = field(default_factory=list)
    results: List[RowResult] = field(default_factory=list)
    message: str = ""

    @property
    def success(self) -> bool:
        return self.state == ImportState.DONE

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "state": self.state.value,
            "message": self.message,
            "stats": self.stats.to_dict(),
            "errors": list(self.errors),
            "results": [
                {
                    "model_number": r.model_number,
                    "title": r.title,
                    "outcome": r.outcome.value,
                    "message": r.message,
                }
                for r in self.results
            ],
        }


class CsvImporter:
    """Runs CSV uploads against a data store.

    Args:
        store: Store that receives the inserts
        affiliate_id: Affiliate tag written into every deal URL
        log: Diagnostic log to append to (a fresh one by default). Passing a
            shared log keeps entries across uploads until it is cleared.
    """

    def __init__(
        self,
        store: DealStore,
        affiliate_id: str = AFFILIATE_ID,
        log: Optional[ImportLog] = None,
    ):
        self.store = store
        self.affiliate_id = affiliate_id
        self.log = log if log is not None else ImportLog()
        self.state = ImportState.IDLE

    def import_file(self, path: Union[str, Path]) -> ImportReport:
        """Read a CSV file fully into memory and import it."""
        self.state = ImportState.READING
        self.log.info(f"Reading file: {path}")
        try:
            text = Path(path).read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            self.log.error(f"Could not read file: {e}")
            self.state = ImportState.ABORTED
            return ImportReport(
                state=self.state,
                errors=[f"Could not read file: {e}"],
                message="Error processing file",
            )
        return self.import_text(text)

    def import_text(self, text: str) -> ImportReport:
        """Import CSV text. Never raises; failures come back in the report."""
        report = ImportReport()
        try:
            self._run(text, report)
        except ImportAborted as e:
            self.state = ImportState.ABORTED
            report.message = str(e)
            self.log.error(str(e))
        except Exception as e:
            logger.exception("Unexpected error during CSV import")
            self.state = ImportState.ABORTED
            report.message = f"Error processing file: {e}"
            self.log.error(report.message)

        report.state = self.state
        log_deal_event("csv_import", {
            "message": report.message or "CSV import finished",
            "state": report.state.value,
            **report.stats.to_dict(),
        })
        return report

    # =========================================================================
    # Pipeline steps
    # =========================================================================

    def _run(self, text: str, report: ImportReport) -> None:
        stats = report.stats
        self.state = ImportState.READING
        lines = split_lines(text.lstrip("\ufeff"))
        self.log.info(f"Found {len(lines)} lines in CSV")

        if len(lines) < 2:
            raise ImportAborted("CSV file must contain headers and at least one data row")

        self.state = ImportState.PARSING_HEADER
        headers = normalize_headers(parse_csv_line(lines[0]))
        self.log.info(f"Headers: {', '.join(headers)}")

        self.state = ImportState.PARSING_ROWS
        stats.total_rows = len(lines) - 1
        candidates: List[ProductRecord] = []

        for row_number, line in enumerate(lines[1:], start=1):
            record = self._parse_row(headers, line, row_number, report)
            if record is not None:
                candidates.append(record)

        stats.candidates = len(candidates)
        self.log.info(f"Validation found {len(candidates)} valid robot vacuums")

        if not candidates:
            raise ImportAborted("No valid robot vacuums found in CSV file")

        self.state = ImportState.SUBMITTING
        for record in candidates:
            result = self._submit(record)
            report.results.append(result)
            if result.outcome == RowOutcome.SUCCESS:
                stats.valid_rows += 1
            elif result.outcome == RowOutcome.SKIPPED:
                stats.duplicates += 1
            else:
                stats.errors += 1
                report.errors.append(f"{record.model_number}: {result.message}")

        self.state = ImportState.DONE
        report.message = self._summary(stats)
        self.log.info(report.message)

    def _parse_row(
        self,
        headers: List[str],
        line: str,
        row_number: int,
        report: ImportReport,
    ) -> Optional[ProductRecord]:
        """Parse and validate one data line. Errors are recorded on the report."""
        try:
            values = parse_csv_line(line)
        except csv.Error as e:
            self._reject(report, [f"Row {row_number}: Could not parse row: {e}"])
            return None

        if len(values) != len(headers):
            message = (
                f"Row {row_number}: Column count mismatch. "
                f"Expected {len(headers)}, got {len(values)}"
            )
            self._reject(report, [message])
            return None

        row = build_row(headers, values, row_number)
        errors = validate_row(row, self.affiliate_id)
        if errors:
            self._reject(report, errors)
            return None

        try:
            return row_to_record(row, self.affiliate_id)
        except URLValidationError as e:
            self._reject(report, [f"Row {row_number}: {e}"])
            return None

    def _reject(self, report: ImportReport, errors: List[str]) -> None:
        report.stats.errors += 1
        report.errors.extend(errors)
        for error in errors:
            self.log.error(error)

    def _submit(self, record: ProductRecord) -> RowResult:
        """Duplicate-check then insert one candidate."""
        try:
            existing = self.store.find_by_model_number(record.model_number)
        except StoreError as e:
            self.log.error(f"Error checking for duplicate {record.model_number}: {e.message}")
            return self._result(record, RowOutcome.FAILED, e.message)

        if existing:
            self.log.info(f"Skipping duplicate robot vacuum: {record.model_number}")
            return self._result(record, RowOutcome.SKIPPED, "Duplicate model number")

        try:
            self.store.insert_product(record)
        except StoreError as e:
            self.log.error(f"Error uploading robot vacuum {record.model_number}: {e.message}")
            return self._result(record, RowOutcome.FAILED, e.message)

        self.log.info(f"Successfully uploaded robot vacuum: {record.model_number}")
        return self._result(record, RowOutcome.SUCCESS)

    @staticmethod
    def _result(record: ProductRecord, outcome: RowOutcome, message: Optional[str] = None) -> RowResult:
        log_deal_event("row_outcome", {
            "message": f"{record.model_number}: {outcome.value}",
            "model_number": record.model_number,
            "outcome": outcome.value,
            "reason": message,
        })
        return RowResult(
            model_number=record.model_number,
            title=record.title,
            outcome=outcome,
            message=message,
        )

    @staticmethod
    def _summary(stats: UploadStats) -> str:
        parts = []
        if stats.valid_rows:
            parts.append(f"Successfully uploaded {stats.valid_rows} robot vacuums")
        if stats.duplicates:
            parts.append(f"Skipped {stats.duplicates} duplicates")
        failed = stats.candidates - stats.valid_rows - stats.duplicates
        if failed:
            parts.append(f"Failed to upload {failed} robot vacuums")
        return ", ".join(parts) or "No robot vacuums uploaded"
