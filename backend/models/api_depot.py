"""
Modèles des ressources de l'API de dépôt (lecture seule)
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class StatusHabilitation(str, Enum):
    ACCEPTED = "accepted"
    PENDING = "pending"
    REJECTED = "rejected"


class Habilitation(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="_id")
    status: str
    code_commune: Optional[str] = Field(default=None, alias="codeCommune")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")


class RevisionFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    hash: Optional[str] = None


class Revision(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="_id")
    code_commune: Optional[str] = Field(default=None, alias="codeCommune")
    files: List[RevisionFile] = Field(default_factory=list)
    published_at: Optional[str] = Field(default=None, alias="publishedAt")

    def get_file(self, file_type: str) -> Optional[RevisionFile]:
        return next((f for f in self.files if f.type == file_type), None)
