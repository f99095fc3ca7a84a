import asyncio
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List

from sqlalchemy import Date, DateTime, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from isodoc.core.exceptions import ValidationFailedError
from isodoc.models.base import Client, CompanyCode, Counter, Document, Log, User, utcnow

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"

# Insert order; deletes run in reverse.
TABLES = (
    ("counters", Counter),
    ("clients", Client),
    ("users", User),
    ("company_codes", CompanyCode),
    ("documents", Document),
    ("logs", Log),
)
REQUIRED_SECTIONS = ("users", "documents", "logs")


def serialize_row(obj) -> Dict[str, Any]:
    row = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.key)
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        row[column.key] = value
    return row


def deserialize_row(model, row: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for column in model.__table__.columns:
        if column.key not in row:
            continue
        value = row[column.key]
        if isinstance(value, str) and isinstance(column.type, DateTime):
            value = datetime.fromisoformat(value)
        elif isinstance(value, str) and isinstance(column.type, Date):
            value = date.fromisoformat(value)
        values[column.key] = value
    return values


def validate_backup(data: Any) -> None:
    if not isinstance(data, dict):
        raise ValidationFailedError("Backup file is not a JSON object")
    missing = [name for name in REQUIRED_SECTIONS if not isinstance(data.get(name), list)]
    if missing:
        raise ValidationFailedError(f"Invalid backup structure, missing: {', '.join(missing)}")
    for name, _ in TABLES:
        if name in data and not isinstance(data[name], list):
            raise ValidationFailedError(f"Invalid backup structure, {name} must be a list")


class BackupService:
    def __init__(self, session: AsyncSession, backup_dir: str):
        self.session = session
        self.backup_dir = Path(backup_dir)

    async def export_data(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"timestamp": utcnow().isoformat(), "version": BACKUP_VERSION}
        for name, model in TABLES:
            result = await self.session.execute(select(model))
            data[name] = [serialize_row(obj) for obj in result.scalars().all()]
        return data

    async def create_backup(self) -> Path:
        data = await self.export_data()
        path = self.backup_dir / f"backup-{utcnow().strftime('%Y%m%d-%H%M%S-%f')}.json"
        await asyncio.to_thread(self._write, path, data)
        logger.info(f"Backup written to {path} ({len(data['documents'])} documents, {len(data['users'])} users)")
        return path

    def _write(self, path: Path, data: Dict[str, Any]) -> None:
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(data, fh, ensure_ascii=False, indent=2)

    def resolve_backup_path(self, name: str) -> Path:
        """Only files inside the backup directory can be restored."""
        root = self.backup_dir.resolve()
        candidate = (root / name).resolve()
        if root not in candidate.parents or not candidate.is_file():
            raise ValidationFailedError("Backup file not found")
        return candidate

    def list_backups(self) -> List[str]:
        if not self.backup_dir.is_dir():
            return []
        return sorted((entry.name for entry in self.backup_dir.glob("backup-*.json")), reverse=True)

    async def restore_backup(self, name: str) -> Dict[str, int]:
        path = self.resolve_backup_path(name)
        try:
            data = await asyncio.to_thread(self._read, path)
        except (OSError, ValueError) as e:
            raise ValidationFailedError(f"Backup file could not be read: {e}")
        validate_backup(data)

        safety_backup = await self.create_backup()
        logger.info(f"Safety backup before restore: {safety_backup}")

        sections = [(name, model) for name, model in TABLES if name in data]
        counts = {}
        try:
            for name, model in reversed(sections):
                await self.session.execute(delete(model).execution_options(synchronize_session=False))
            self.session.expunge_all()
            for name, model in sections:
                rows = [model(**deserialize_row(model, row)) for row in data[name]]
                self.session.add_all(rows)
                await self.session.flush()
                counts[name] = len(rows)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.error(f"Restore from {path} failed, database left unchanged", exc_info=True)
            raise

        logger.info(f"Restored backup {path.name}: {counts}")
        return counts

    @staticmethod
    def _read(path: Path) -> Any:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
