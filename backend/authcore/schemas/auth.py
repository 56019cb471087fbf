"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class SignupSchema(Schema):
    """Input payload for principal registration."""

    username = fields.String(required=True, validate=validate.Length(min=1, max=50))
    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class LoginSchema(Schema):
    """Input payload for authenticating a principal."""

    username = fields.String(required=True, validate=validate.Length(min=1, max=50))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshSchema(Schema):
    """Input payload carrying a refresh token.

    The token is optional at the schema level so that an absent token is
    reported as ``missing_token`` by the service, not as a validation error.
    """

    refresh_token = fields.String(load_default=None, allow_none=True)


class PrincipalSchema(Schema):
    """Public representation of a principal (never the hash or tokens)."""

    id = fields.String(required=True)
    username = fields.String(required=True)
    email = fields.Email(required=True)
    role = fields.String(required=True)


class IdentitySchema(Schema):
    """Identity resolved by the authorization gate."""

    principal_id = fields.String(required=True)
    username = fields.String(required=True)
    role = fields.String(required=True)


class TokenPairSchema(Schema):
    """Response payload containing an access/refresh pair."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.String(dump_default="bearer")
