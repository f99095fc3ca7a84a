from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, Integer, String, DateTime, Date, Boolean, ForeignKey, JSON, BigInteger, Text
from datetime import datetime, timezone

Base = declarative_base()

def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

class Counter(Base):
    __tablename__ = "counters"

    name = Column(String, primary_key=True)
    seq = Column(Integer, nullable=False, default=0)

class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String, unique=True, nullable=False)
    drive_folder_id = Column(String, nullable=False)
    google_access_token = Column(Text)
    google_refresh_token = Column(Text)
    google_token_expiry = Column(BigInteger)  # epoch ms
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def has_credentials(self) -> bool:
        return bool(self.google_access_token or self.google_refresh_token)

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=False)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="viewer")
    tenant_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    last_login = Column(DateTime)
    session_expiry = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)

class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=False)
    title = Column(String, nullable=False)
    path = Column(String, nullable=False, index=True)
    revision = Column(String, nullable=False)
    source_url = Column(String, nullable=False, default="")
    file_type = Column(String, nullable=False)
    alert_status = Column(String, nullable=True, default="none")
    expiry_date = Column(Date, nullable=True)
    warning_days = Column(Integer, nullable=True)
    is_obsolete = Column(Boolean, nullable=False, default=False)
    parent_id = Column(Integer, ForeignKey("documents.id"), nullable=True)
    integrity_hash = Column(String, nullable=True)
    encrypted_cache_path = Column(String, nullable=True)
    tenant_id = Column(Integer, ForeignKey("clients.id"), nullable=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def revision_number(self) -> int:
        return parse_revision_number(self.revision)

class CompanyCode(Base):
    __tablename__ = "company_codes"

    id = Column(Integer, primary_key=True, autoincrement=False)
    code = Column(String, unique=True, nullable=False)
    role = Column(String, nullable=False, default="viewer")
    usage_limit = Column(Integer, nullable=False, default=1)
    usage_count = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def is_valid(self, now: datetime = None) -> bool:
        now = now or utcnow()
        if not self.is_active:
            return False
        if self.expires_at is not None and self.expires_at < now:
            return False
        return self.usage_count < self.usage_limit

class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, autoincrement=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String, nullable=False)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=True)
    details = Column(JSON, default=dict)
    timestamp = Column(DateTime, default=utcnow, index=True)

def parse_revision_number(revision: str) -> int:
    """'Rev.3' -> 3. Unparseable revisions sort below every real one."""
    if not revision:
        return 0
    value = revision.rsplit(".", 1)[-1]
    try:
        return int(value)
    except ValueError:
        return 0
