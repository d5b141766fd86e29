"""``CREATE SECRET`` statements for cloud storage credentials.

Secrets are registered with the engine so ``COPY``/``read_parquet`` can reach
``s3://`` or ``az://`` paths. Every value is rendered through
:func:`~tinyorm.literals.string_literal`.

    >>> create_secret_statement(S3Secret(name="lake", key_id="AKIA", secret="s3cr3t", region="eu-west-1"))
    "CREATE SECRET lake (TYPE s3, KEY_ID 'AKIA', SECRET 's3cr3t', REGION 'eu-west-1')"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tinyorm.errors import ValidationError
from tinyorm.literals import format_value, string_literal


class SecretType(str, Enum):
    S3 = "s3"
    AZURE = "azure"
    GCS = "gcs"
    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLITE = "sqlite"
    CUSTOM = "custom"


class AzureProviderType(str, Enum):
    CREDENTIAL_CHAIN = "credential_chain"
    CONFIG = "config"
    CONNECTION_STRING = "connection_string"


@dataclass
class Secret:
    """Generic secret: ``type`` plus free-form key/value parameters."""

    name: str
    type: SecretType = SecretType.CUSTOM
    parameters: dict[str, Any] = field(default_factory=dict)
    persistent: bool = False

    def options(self) -> list[str]:
        return [f"{key.upper()} {format_value(value)}" for key, value in self.parameters.items()]


@dataclass
class S3Secret(Secret):
    type: SecretType = SecretType.S3
    key_id: str = ""
    secret: str = ""
    region: str | None = None
    scope: str | None = None

    def options(self) -> list[str]:
        if not self.key_id or not self.secret:
            raise ValidationError(
                f"S3 secret {self.name} requires key_id and secret", field="key_id"
            )
        opts = [f"KEY_ID {string_literal(self.key_id)}", f"SECRET {string_literal(self.secret)}"]
        if self.region:
            opts.append(f"REGION {string_literal(self.region)}")
        if self.scope:
            opts.append(f"SCOPE {string_literal(self.scope)}")
        return opts + super().options()


@dataclass
class AzureSecret(Secret):
    """Azure secret; ``provider=None`` means a connection string."""

    type: SecretType = SecretType.AZURE
    provider: AzureProviderType | None = None
    account_name: str | None = None
    chain: str | None = None
    connection_string: str | None = None

    def options(self) -> list[str]:
        provider = self.provider or AzureProviderType.CONNECTION_STRING
        if provider == AzureProviderType.CONNECTION_STRING:
            if not self.connection_string:
                raise ValidationError(
                    f"Azure secret {self.name} requires a connection string",
                    field="connection_string",
                )
            return [f"CONNECTION_STRING {string_literal(self.connection_string)}"]

        if not self.account_name:
            raise ValidationError(
                f"Azure secret {self.name} requires account_name", field="account_name"
            )
        opts = [f"PROVIDER {provider.value}"]
        if provider == AzureProviderType.CREDENTIAL_CHAIN and self.chain:
            opts.append(f"CHAIN {string_literal(self.chain)}")
        opts.append(f"ACCOUNT_NAME {string_literal(self.account_name)}")
        return opts + super().options()


def create_secret_statement(secret: Secret) -> str:
    keyword = "CREATE PERSISTENT SECRET" if secret.persistent else "CREATE SECRET"
    options = [f"TYPE {SecretType(secret.type).value}", *secret.options()]
    return f"{keyword} {secret.name} ({', '.join(options)})"


def drop_secret_statement(name: str) -> str:
    return f"DROP SECRET IF EXISTS {name}"


__all__ = [
    "SecretType",
    "AzureProviderType",
    "Secret",
    "S3Secret",
    "AzureSecret",
    "create_secret_statement",
    "drop_secret_statement",
]
