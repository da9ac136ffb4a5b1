from sqlalchemy.orm import Session

from findme.models.user import User as UserModel
from findme.schemas.user import User as UserSchema
from findme.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserModel, UserSchema]):
    """사용자 리포지토리 - 가입/로그인은 외부 애플리케이션 담당, 여기서는 조회만"""

    def __init__(self, db: Session):
        super().__init__(UserModel, UserSchema, db)