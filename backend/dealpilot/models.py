from sqlalchemy import Column, Integer, String, Text, DateTime, Float, ForeignKey
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy import create_engine
from datetime import datetime
from .config import DATABASE_URL
from .schemas import DealContext

Base = declarative_base()


def make_engine(url: str = DATABASE_URL):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, future=True, connect_args=connect_args)


engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Deal(Base):
    __tablename__ = "deals"
    id = Column(String, primary_key=True, index=True)
    title = Column(String)
    business_legal_name = Column(String, nullable=True)
    asking_price = Column(Float, nullable=True)
    deal_type = Column(String, nullable=True)
    business_industry = Column(String, nullable=True)
    counterparty_name = Column(String, nullable=True)
    status = Column(String, default="draft")
    deal_category = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    documents = relationship("Document", back_populates="deal", cascade="all, delete-orphan")

    def to_context(self) -> DealContext:
        return DealContext(
            title=self.title,
            business_name=self.business_legal_name,
            asking_price=self.asking_price,
            deal_type=self.deal_type,
            industry=self.business_industry,
            counterparty_name=self.counterparty_name,
            status=self.status,
            deal_category=self.deal_category,
        )


class Document(Base):
    __tablename__ = "documents"
    id = Column(Integer, primary_key=True, index=True)
    deal_id = Column(String, ForeignKey("deals.id"), index=True)
    name = Column(String)
    category = Column(String, default="contract")
    uploaded_by = Column(String, nullable=True)
    storage_path = Column(String)
    size = Column(Integer)
    type = Column(String)
    status = Column(String, default="draft")
    created_at = Column(DateTime, default=datetime.utcnow)
    deal = relationship("Deal", back_populates="documents")
    versions = relationship("DocumentVersion", back_populates="document", cascade="all, delete-orphan")


class DocumentVersion(Base):
    __tablename__ = "document_versions"
    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("documents.id"), index=True)
    version_number = Column(Integer, default=1)
    storage_path = Column(String)
    size = Column(Integer)
    type = Column(String)
    uploaded_by = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    document = relationship("Document", back_populates="versions")


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
