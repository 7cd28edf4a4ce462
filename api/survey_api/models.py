import uuid

from sqlalchemy import JSON, Column, DateTime, Index, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from .database import Base

# Documents are stored whole; the scalar columns mirror the fields queried on.
DocumentJSON = JSON().with_variant(JSONB(), "postgresql")


class SurveyRecord(Base):
    __tablename__ = "survey"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    status = Column(String, nullable=False, default="draft")
    document = Column(DocumentJSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("idx_survey_status", "status"),)


class SurveyResponseRecord(Base):
    __tablename__ = "survey_response"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    survey_id = Column(UUID(as_uuid=True), nullable=False)
    respondent_email = Column(String, nullable=False)
    status = Column(String, nullable=False, default="InProgress")
    document = Column(DocumentJSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("survey_id", "respondent_email", name="uq_survey_respondent"),
        Index("idx_survey_response_survey_id", "survey_id"),
    )
