"""Terminal schemas"""

from typing import Optional
from pydantic import BaseModel, Field


class StartTerminalRequest(BaseModel):
    """Request schema for starting a terminal

    Note:
        - terminal_id is specified in the URL path parameter
        - working_dir defaults to the user's home directory
    """
    working_dir: Optional[str] = Field(default=None, description="Shell working directory")


class WriteTerminalRequest(BaseModel):
    data: str = Field(..., description="Input to forward to the shell (keystrokes)")


class ResizeTerminalRequest(BaseModel):
    cols: int = Field(..., ge=1, le=1000)
    rows: int = Field(..., ge=1, le=1000)


class TerminalOut(BaseModel):
    terminal_id: str
