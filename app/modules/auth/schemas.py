from pydantic import BaseModel, Field
from typing import Optional, Dict, Any


class Principal(BaseModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def role(self) -> Optional[str]:
        return self.metadata.get("role")
