from sqlalchemy import Column, Integer, String, JSON, UniqueConstraint
from shared.config.database import Base

class Document(Base):
    """One stored document. Subcollections live under a path-shaped collection
    name, e.g. ``orders/abc123/statusHistory``."""
    __tablename__ = "documents"
    # We use a separate schema to simulate microservice isolation
    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
        {"schema": "order_schema"},
    )

    # Autoincrement id doubles as insertion order for child listings
    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String, nullable=False, index=True)
    doc_id = Column(String, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
