"""Models package for the Data Alchemist upload sessions."""
from backend.models.schema import Base, UploadSession, ValidationRule

__all__ = ['Base', 'UploadSession', 'ValidationRule']
