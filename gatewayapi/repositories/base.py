from abc import ABC
from typing import TypeVar, Generic, Optional, List, Dict, Any, Type
from sqlalchemy.orm import Session
from pydantic import BaseModel

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """Base class for repositories - reads come back as pydantic schemas"""

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """Convert a SQLAlchemy model into the repository schema"""
        if model_instance is None:
            return None
        return self.schema_class.model_validate(model_instance)

    def _to_schemas(self, model_instances: List[Any]) -> List[SchemaType]:
        return [self._to_schema(instance) for instance in model_instances]

    def _ensure_clean_session(self) -> None:
        """Roll back a failed transaction so the session can be reused.

        An open, healthy transaction is left alone: it may hold row locks
        taken earlier in the same unit of work.
        """
        if not self.db.is_active:
            self.db.rollback()
            return

        tx = self.db.get_transaction()
        if tx is not None and not tx.is_active:
            self.db.rollback()

    def _query(self, filters: Optional[Dict[str, Any]] = None):
        query = self.db.query(self.model_class)
        if filters:
            for key, value in filters.items():
                if hasattr(self.model_class, key):
                    query = query.filter(getattr(self.model_class, key) == value)
        return query

    def get_model(self, id: Any) -> Optional[T]:
        """ORM instance by primary key, for callers that mutate it"""
        self._ensure_clean_session()
        return self.db.get(self.model_class, id)

    def get_by_id(self, id: Any) -> Optional[SchemaType]:
        """Lookup by id"""
        return self._to_schema(self.get_model(id))

    def create(self, commit: bool = True, **kwargs) -> Optional[SchemaType]:
        """Insert a row and return it as a schema"""
        self._ensure_clean_session()
        instance = self.model_class(**kwargs)
        self.db.add(instance)
        try:
            self.db.flush()
            self.db.refresh(instance)
            if commit:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self._to_schema(instance)

    def exists(self, filters: Dict[str, Any]) -> bool:
        self._ensure_clean_session()
        return self._query(filters).first() is not None
