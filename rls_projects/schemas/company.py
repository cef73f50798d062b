"""
Company schemas.
"""

from typing import Annotated
from pydantic import BaseModel, StringConstraints


class CompanyCreate(BaseModel):
    """Company creation schema."""
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]
