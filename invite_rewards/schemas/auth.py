# invite_rewards/schemas/auth.py
from pydantic import BaseModel


class AdminLogin(BaseModel):
    username: str
    password: str


# Схема для ответа с токеном
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
