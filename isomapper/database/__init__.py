from isomapper.database.models import Base, EntryRecord, StatementRecord
from isomapper.database.repository import MessageRepository

__all__ = ["Base", "StatementRecord", "EntryRecord", "MessageRepository"]
