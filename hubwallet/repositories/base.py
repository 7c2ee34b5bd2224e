from abc import ABC
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import CursorResult
from sqlalchemy.orm import Session

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """모든 리포지토리의 베이스 클래스 - Pydantic 응답 보장

    리포지토리는 commit/rollback 하지 않는다. 트랜잭션 경계는 서비스 계층이 관리한다.
    """

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    @property
    def dialect_name(self) -> str:
        return self.db.get_bind().dialect.name

    def _insert_ignoring_conflict(
        self,
        values: Dict[str, Any],
        conflict_columns: List[str],
        returning: Optional[List[Any]] = None,
    ) -> CursorResult:
        """INSERT ... ON CONFLICT DO NOTHING

        유니크 제약 충돌 시 예외 없이 0 rows 를 반환한다. 읽고-쓰기 검사와 달리
        동시 호출 사이에서도 정확히 하나만 삽입된다.
        """
        table = self.model_class.__table__  # type: ignore[attr-defined]
        if self.dialect_name == "postgresql":
            stmt = postgresql.insert(table)
        elif self.dialect_name == "sqlite":
            stmt = sqlite.insert(table)
        else:
            raise NotImplementedError(
                f"Unsupported database dialect: {self.dialect_name}"
            )

        stmt = stmt.values(**values).on_conflict_do_nothing(
            index_elements=conflict_columns
        )
        if returning:
            stmt = stmt.returning(*returning)
        return self.db.execute(stmt)
