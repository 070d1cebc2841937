from sqlalchemy import Column, String, Text, Integer, BigInteger, TIMESTAMP, JSON, Index, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from pgvector.sqlalchemy import Vector

Base = declarative_base()

# Dimension is fixed by the table DDL in db/scripts, not by the ORM.
MetadataJSON = JSON().with_variant(JSONB(), "postgresql")


class DocumentRecord(Base):
    __tablename__ = "documents"
    id = Column(String, primary_key=True)
    title = Column(Text, nullable=False)
    source = Column(Text)
    timestamp_ms = Column(BigInteger, nullable=False)
    total_chunks = Column(Integer, nullable=False, default=0)


class BlobRecord(Base):
    __tablename__ = "blobs"
    key = Column(Text, primary_key=True)
    content = Column(Text, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class VectorRecord(Base):
    __tablename__ = "vectors"
    id = Column(String, primary_key=True)
    document_id = Column(String, nullable=False)
    chunk_index = Column(Integer, nullable=False)
    embedding = Column(Vector(), nullable=False)
    meta = Column("metadata", MetadataJSON, nullable=False, default=dict)

    __table_args__ = (Index("ix_vectors_document_id", "document_id"),)
