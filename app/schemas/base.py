from typing import Any, List

from pydantic import BaseModel


class PaginatedResponse(BaseModel):
	total: int
	skip: int
	limit: int
	data: List[Any]
