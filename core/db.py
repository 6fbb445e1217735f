from sqlalchemy import create_engine, Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.orm import sessionmaker, declarative_base
from datetime import datetime
from core.config import Config

engine = create_engine(Config.DATABASE_URL, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()

class AccountAuthorization(Base):
    """Grants a caller identity read access to one linked Stripe account.

    Rows are written by the system of record; this service only reads them.
    """
    __tablename__ = "account_authorizations"
    __table_args__ = (UniqueConstraint("identity", "account_id", name="uq_identity_account"),)
    id = Column(Integer, primary_key=True)
    identity = Column(String(255), nullable=False, index=True)
    account_id = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

class AuthorizationStore:
    def __init__(self, session_factory=None):
        self.session_factory = session_factory or SessionLocal

    def find(self, account_id, identity):
        if not account_id or not identity:
            return []
        db = self.session_factory()
        try:
            return db.query(AccountAuthorization).filter_by(account_id=account_id, identity=identity).all()
        finally:
            db.close()

def init_db():
    Base.metadata.create_all(bind=engine)
