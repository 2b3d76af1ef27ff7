from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserProfileResponse(BaseModel):
    id: int
    firebase_uid: str
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    cpf_cnpj: Optional[str] = None
    role: str
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class UserProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    # digits only; Asaas rejects formatted documents
    cpf_cnpj: Optional[str] = Field(None, pattern=r"^(\d{11}|\d{14})$")
