from pydantic import BaseModel, EmailStr

from findme.models.user import UserRole


class User(BaseModel):
    id: int
    email: EmailStr
    name: str
    is_active: bool = True
    role: UserRole = UserRole.USER

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(self.role)
