"""Tests for ``tinyorm.secrets``: CREATE SECRET rendering."""

from __future__ import annotations

import pytest

from tinyorm.errors import ValidationError
from tinyorm.secrets import (
    AzureProviderType,
    AzureSecret,
    S3Secret,
    Secret,
    SecretType,
    create_secret_statement,
    drop_secret_statement,
)


class TestS3Secret:
    def test_minimal(self):
        secret = S3Secret(name="lake", key_id="AKIA", secret="s3cr3t")
        assert create_secret_statement(secret) == (
            "CREATE SECRET lake (TYPE s3, KEY_ID 'AKIA', SECRET 's3cr3t')"
        )

    def test_region_scope_and_persistence(self):
        secret = S3Secret(
            name="lake",
            key_id="AKIA",
            secret="s3cr3t",
            region="eu-west-1",
            scope="s3://bucket",
            persistent=True,
        )
        assert create_secret_statement(secret) == (
            "CREATE PERSISTENT SECRET lake (TYPE s3, KEY_ID 'AKIA', SECRET 's3cr3t', "
            "REGION 'eu-west-1', SCOPE 's3://bucket')"
        )

    def test_missing_credentials(self):
        with pytest.raises(ValidationError):
            create_secret_statement(S3Secret(name="lake", key_id="AKIA"))


class TestAzureSecret:
    def test_connection_string_by_default(self):
        secret = AzureSecret(name="blob", connection_string="AccountName=x;AccountKey=y")
        assert create_secret_statement(secret) == (
            "CREATE SECRET blob (TYPE azure, CONNECTION_STRING 'AccountName=x;AccountKey=y')"
        )

    def test_connection_string_required(self):
        with pytest.raises(ValidationError):
            create_secret_statement(AzureSecret(name="blob"))

    def test_credential_chain(self):
        secret = AzureSecret(
            name="blob",
            provider=AzureProviderType.CREDENTIAL_CHAIN,
            chain="cli;env",
            account_name="acct",
        )
        assert create_secret_statement(secret) == (
            "CREATE SECRET blob (TYPE azure, PROVIDER credential_chain, "
            "CHAIN 'cli;env', ACCOUNT_NAME 'acct')"
        )

    def test_account_name_required_for_providers(self):
        secret = AzureSecret(name="blob", provider=AzureProviderType.CONFIG)
        with pytest.raises(ValidationError):
            create_secret_statement(secret)


class TestGenericSecret:
    def test_parameters(self):
        secret = Secret(
            name="pg",
            type=SecretType.POSTGRES,
            parameters={"host": "localhost", "port": 5432},
        )
        assert create_secret_statement(secret) == (
            "CREATE SECRET pg (TYPE postgres, HOST 'localhost', PORT 5432)"
        )

    def test_drop(self):
        assert drop_secret_statement("pg") == "DROP SECRET IF EXISTS pg"
