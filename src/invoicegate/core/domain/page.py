"""Page — страница результата list-операций."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    total: int = Field(..., ge=0, description="Всего элементов до пагинации")
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    items: list[T] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit
