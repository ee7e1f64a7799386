"""
SQLAlchemy models for the Data Alchemist upload sessions.

An upload session holds everything needed to resume work on one uploaded
file: the raw table, the column mapping, custom rules, the current
validated rows and the undo/redo stacks. Tables are small, so row data is
stored as JSON documents rather than normalized.
"""

from sqlalchemy import (
    JSON, Column, ForeignKey, Integer, String, Text, TIMESTAMP, CheckConstraint, Index, func
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class UploadSession(Base):
    """Represents one uploaded CSV/XLSX file and its editing state."""

    __tablename__ = 'upload_sessions'
    __table_args__ = (
        CheckConstraint(
            "dataset_type IN ('clients', 'tasks', 'workers')",
            name='upload_sessions_dataset_type_check'
        ),
        Index('idx_upload_sessions_created_at', 'created_at'),
        {'comment': 'Uploaded tables with mapping, rules and edit history'}
    )

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        nullable=False
    )
    dataset_type = Column(
        String(20),
        nullable=False,
        comment='Dataset kind: clients, tasks or workers'
    )
    original_filename = Column(
        String(255),
        nullable=False,
        comment='Uploaded file name'
    )
    file_hash = Column(
        String(64),
        nullable=False,
        comment='SHA256 of the uploaded bytes'
    )
    created_at = Column(
        TIMESTAMP,
        server_default=func.current_timestamp(),
        nullable=False
    )
    updated_at = Column(
        TIMESTAMP,
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
        nullable=False
    )

    # Parsed upload
    headers = Column(JSON, nullable=False, default=list, comment='Source column names in file order')
    raw_rows = Column(JSON, nullable=False, default=list, comment='Rows as parsed, keyed by header')

    # Editing state
    mapping = Column(JSON, nullable=False, default=dict, comment='Target field -> source header')
    rows = Column(JSON, nullable=False, default=list, comment='Current mapped and validated rows')
    undo_stack = Column(JSON, nullable=False, default=list, comment='Row snapshots, oldest first')
    redo_stack = Column(JSON, nullable=False, default=list, comment='Row snapshots, next first')

    rules = relationship(
        'ValidationRule',
        back_populates='session',
        cascade='all, delete-orphan',
        order_by='ValidationRule.id'
    )

    def __repr__(self):
        return f"<UploadSession(id={self.id}, file='{self.original_filename}', type='{self.dataset_type}')>"


class ValidationRule(Base):
    """User-defined rule evaluated against every row of a session."""

    __tablename__ = 'validation_rules'
    __table_args__ = (
        CheckConstraint(
            "condition IN ('equals', 'not equals', 'contains', 'not contains')",
            name='validation_rules_condition_check'
        ),
        Index('idx_validation_rules_session', 'session_id'),
    )

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        nullable=False
    )
    session_id = Column(
        Integer,
        ForeignKey('upload_sessions.id', ondelete='CASCADE'),
        nullable=False
    )
    field = Column(String(255), nullable=False, comment='Column the rule inspects')
    condition = Column(String(20), nullable=False, comment='equals, not equals, contains, not contains')
    value = Column(Text, nullable=False, comment='Comparison text')
    message = Column(Text, nullable=False, default='', comment='Error shown when the rule fails')
    created_at = Column(
        TIMESTAMP,
        server_default=func.current_timestamp(),
        nullable=False
    )

    session = relationship('UploadSession', back_populates='rules')

    def __repr__(self):
        return f"<ValidationRule(id={self.id}, field='{self.field}', condition='{self.condition}')>"
