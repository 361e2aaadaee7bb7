"""Language server schemas"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


# ==================== Request Schemas ====================


class StartLspRequest(BaseModel):
    """Request schema for starting a language server"""
    language: str = Field(..., min_length=1, description="Language tag, e.g. 'rust' or 'go'")
    root_path: str = Field(..., min_length=1, description="Project root directory")


class DetectProjectRequest(BaseModel):
    """Request schema for project detection"""
    path: str = Field(..., min_length=1, description="File or directory inside a project")


# ==================== Response Schemas ====================


class StartLspOut(BaseModel):
    """Started language server; the front end connects to ws://host:port"""
    lsp_id: str
    port: int


class ProjectInfoOut(BaseModel):
    project_type: str
    root_path: str


class LspInstanceOut(BaseModel):
    """Snapshot of a running language server instance"""
    lsp_id: str
    language: str
    root_path: str
    port: Optional[int] = None
    pid: Optional[int] = None
    alive: bool
    clients: int
    started_at: Optional[datetime] = None
