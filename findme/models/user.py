from enum import Enum
from typing import Union

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from findme.models.base import BaseModel


class UserRole(str, Enum):
    """사용자 역할 정의"""

    USER = "user"  # 일반 사용자 (신고/제보)
    VOLUNTEER = "volunteer"  # 커뮤니티 프로젝트 봉사자
    ADMIN = "admin"  # 관리자

    @classmethod
    def is_admin(cls, role: Union[str, "UserRole"]) -> bool:
        """관리자 권한 확인"""
        if isinstance(role, cls):
            role = role.value
        return role == cls.ADMIN.value


class User(BaseModel):
    """사용자 - 인증/가입은 외부 애플리케이션이 담당하며 여기서는 조회만 한다"""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), default=UserRole.USER.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )  # For user deactivation

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(str(self.role))
