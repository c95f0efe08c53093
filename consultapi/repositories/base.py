from abc import ABC
from typing import Any, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import Query, Session

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """
    리포지토리 공통 기능 - 항상 Pydantic 스키마를 반환한다

    쓰기 메서드의 commit 플래그:
    - True: 단독 호출 (스크립트, 관리자 수정)
    - False: 서비스가 transactional() 안에서 여러 쓰기를 묶는 경우. flush만 한다
    """

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        if model_instance is None:
            return None
        return self.schema_class.model_validate(model_instance)

    def _to_schemas(self, model_instances: List[Any]) -> List[SchemaType]:
        return [self.schema_class.model_validate(m) for m in model_instances]

    def _query(self) -> Query:
        return self.db.query(self.model_class)

    def _get_model(self, id: Any, for_update: bool = False) -> Optional[T]:
        """
        ORM 인스턴스 조회. 조건부 UPDATE 이후에도 최신 값을 보도록 identity map을 덮어쓴다.
        for_update=True면 SELECT ... FOR UPDATE (SQLite에서는 무시됨)
        """
        query = self._query().filter(getattr(self.model_class, "id") == id)
        query = query.populate_existing()
        if for_update:
            query = query.with_for_update()
        return query.first()

    def _persist(self, instance: T, commit: bool) -> T:
        self.db.add(instance)
        try:
            self.db.flush()
            self.db.refresh(instance)
            if commit:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return instance

    def get_by_id(self, id: Any) -> Optional[SchemaType]:
        return self._to_schema(self._get_model(id))

    def get_by_field(self, field_name: str, value: Any) -> Optional[SchemaType]:
        instance = (
            self._query()
            .filter(getattr(self.model_class, field_name) == value)
            .populate_existing()
            .first()
        )
        return self._to_schema(instance)

    def exists(self, **filters: Any) -> bool:
        query = self._query()
        for key, value in filters.items():
            query = query.filter(getattr(self.model_class, key) == value)
        return self.db.query(query.exists()).scalar()

    def create(self, commit: bool = True, **kwargs) -> Optional[SchemaType]:
        instance = self._persist(self.model_class(**kwargs), commit)
        return self._to_schema(instance)

    def update(
        self, instance_id: Any, commit: bool = True, **kwargs
    ) -> Optional[SchemaType]:
        """전달된 컬럼만 변경. 행이 없으면 None"""
        instance = self._get_model(instance_id)
        if instance is None:
            return None

        for key, value in kwargs.items():
            if not hasattr(instance, key):
                raise AttributeError(f"{self.model_class.__name__} has no column '{key}'")
            setattr(instance, key, value)

        return self._to_schema(self._persist(instance, commit))
