from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class DeploymentCreateRequest(BaseModel):
    request_id: str = Field(min_length=1)
    workspace_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    repository_url: str = Field(min_length=1)
    branch: str = "main"
    domain: Optional[str] = None
    auth_token: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


class CancelResponse(BaseModel):
    execution_id: str
    cancelled: bool
    status: str
