from app.models.user import User
from app.models.refresh_token import RefreshToken
from app.models.pre_approval import PreApproval
from app.models.visitor import Visitor
from app.models.setting import Setting

__all__ = ["User", "RefreshToken", "PreApproval", "Visitor", "Setting"]
