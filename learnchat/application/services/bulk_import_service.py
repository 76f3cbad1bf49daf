"""Bulk import pipeline — validate spreadsheet rows, issue passwords, create users.

Rows are processed strictly in order. A bad row is recorded in the report
and the batch carries on; nothing short of an unreadable file stops it.
"""

import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

import structlog

from learnchat.application.services.auth_service import hash_password
from learnchat.application.services.credential_service import CredentialIssuer, PasswordStrategy
from learnchat.application.services.tabular_codec import Source, TabularCodecError, read_user_rows
from learnchat.config import get_settings
from learnchat.domain.repositories.entity_repository import EntityRepository
from learnchat.domain.schemas.analytics import BulkImportReport, RowError
from learnchat.domain.schemas.user import GeneratedPassword, UserDraft, normalize_email

settings = get_settings()
logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Spreadsheet row of the first data line (row 1 is the header)
FIRST_DATA_ROW = 2

REQUIRED_FIELDS = [
    ("Name", "Name is required"),
    ("Email", "Email is required"),
    ("Employee ID", "Employee ID is required"),
    ("Phone", "Phone is required"),
    ("Location", "Location is required"),
]

DUPLICATE_MESSAGE = "Email or Employee ID already exists"

ProgressCallback = Callable[[float], None]


def _text(row: Dict[str, Any], column: str) -> str:
    value = row.get(column)
    return "" if value is None else str(value).strip()


class BulkImportPipeline:
    def __init__(
        self,
        repo: EntityRepository,
        issuer: CredentialIssuer,
        row_delay: Optional[float] = None,
    ):
        self.repo = repo
        self.issuer = issuer
        self.row_delay = settings.BULK_IMPORT_ROW_DELAY_SECONDS if row_delay is None else row_delay

    def validate_row(self, row: Dict[str, Any], emails: Set[str], employee_ids: Set[str]) -> List[str]:
        """Error messages for one row; `emails`/`employee_ids` hold identities already taken."""
        errors = [message for column, message in REQUIRED_FIELDS if not _text(row, column)]

        email = _text(row, "Email")
        if email and not EMAIL_PATTERN.match(email):
            errors.append("Invalid email format")

        employee_id = _text(row, "Employee ID")
        if (email and normalize_email(email) in emails) or (employee_id and employee_id in employee_ids):
            errors.append(DUPLICATE_MESSAGE)
        return errors

    def run(
        self,
        rows: List[Dict[str, Any]],
        strategy: PasswordStrategy | str = PasswordStrategy.SIMPLE,
        created_by: str = "bulk-upload",
        progress: Optional[ProgressCallback] = None,
    ) -> BulkImportReport:
        report = BulkImportReport()
        existing = self.repo.list_users(fresh=True)
        emails = {normalize_email(u.email) for u in existing}
        employee_ids = {u.employee_id for u in existing}

        staged: List[UserDraft] = []
        passwords: Dict[str, str] = {}
        row_numbers: Dict[str, int] = {}

        total = len(rows)
        for i, row in enumerate(rows):
            row_number = i + FIRST_DATA_ROW
            errors = self.validate_row(row, emails, employee_ids)
            if errors:
                report.errors.append(RowError(row=row_number, error=", ".join(errors), data=dict(row)))
            else:
                email = normalize_email(_text(row, "Email"))
                password = self.issuer.generate(strategy)
                staged.append(UserDraft(
                    name=_text(row, "Name"),
                    email=email,
                    phone=_text(row, "Phone"),
                    employee_id=_text(row, "Employee ID"),
                    location=_text(row, "Location"),
                    is_admin=_text(row, "Is Admin").lower() == "true",
                    password_hash=hash_password(password),
                    password_generated_at=datetime.now(timezone.utc),
                    created_by=created_by,
                ))
                emails.add(email)
                employee_ids.add(_text(row, "Employee ID"))
                passwords[email] = password
                row_numbers[email] = row_number

            if progress:
                progress((i + 1) / total * 100)
            if self.row_delay and i + 1 < total:
                time.sleep(self.row_delay)

        if staged:
            result = self.repo.create_users_bulk(staged)
            # Lost to another actor that wrote the same identity meanwhile
            for draft in result.skipped:
                report.errors.append(RowError(
                    row=row_numbers[draft.email],
                    error=DUPLICATE_MESSAGE,
                    data={"Email": draft.email, "Employee ID": draft.employee_id},
                ))
            report.errors.sort(key=lambda e: e.row)
            for user in result.created:
                report.success.append(user.public())
                report.passwords.append(GeneratedPassword(
                    user_id=user.id, user_name=user.name, email=user.email, password=passwords[user.email]
                ))

        logger.info(
            "Bulk import finished",
            rows=total,
            created=len(report.success),
            errors=len(report.errors),
            strategy=PasswordStrategy(strategy).value,
        )
        return report

    def import_file(
        self,
        source: Source,
        filename: str,
        strategy: PasswordStrategy | str = PasswordStrategy.SIMPLE,
        created_by: str = "bulk-upload",
        progress: Optional[ProgressCallback] = None,
    ) -> BulkImportReport:
        try:
            rows = read_user_rows(source, filename)
        except TabularCodecError as e:
            logger.warning("Bulk import file rejected", filename=filename, reason=str(e))
            return BulkImportReport(errors=[RowError(
                row=0,
                error="Failed to process file. Please ensure it's a valid Excel file.",
                data={"reason": str(e)},
            )])
        return self.run(rows, strategy=strategy, created_by=created_by, progress=progress)
