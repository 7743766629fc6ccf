from pydantic import Field

from .common import RequestSchema


class LoginSchema(RequestSchema):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ForgotPasswordSchema(RequestSchema):
    email: str = Field(min_length=3)


class ResetPasswordSchema(RequestSchema):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8)


class ChangePasswordSchema(RequestSchema):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)


class TokenSchema(RequestSchema):
    token: str = Field(min_length=1)


class SetPasswordSchema(RequestSchema):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8)
