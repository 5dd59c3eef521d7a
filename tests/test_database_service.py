from __future__ import annotations

import asyncio

import pytest
from botocore.exceptions import ClientError

from app.core.config import Settings
from app.core.exceptions import UserExistsError
from app.services.database_service import EMAIL_CLAIM_PREFIX, DynamoDBService, dynamodb_client_kwargs


class _FakeDynamo:
    def __init__(self, pages=None, transact_error=None):
        self.pages = list(pages or [])
        self.transact_error = transact_error
        self.queries = []
        self.transactions = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def query(self, **kwargs):
        self.queries.append(dict(kwargs))
        return self.pages.pop(0)

    async def transact_write_items(self, **kwargs):
        self.transactions.append(kwargs)
        if self.transact_error:
            raise self.transact_error
        return {}


def _settings(**overrides) -> Settings:
    values = dict(
        AUTH0_DOMAIN="tenant.auth0.test",
        HOME_LOCATION="http://localhost:8000",
        SESSION_SECRET="x",
        DYNAMODB_USERS_TABLE_NAME="users-test",
    )
    values.update(overrides)
    return Settings(**values)


def _service(fake: _FakeDynamo) -> DynamoDBService:
    svc = DynamoDBService(_settings())

    async def _get_client():
        return fake

    svc._get_client = _get_client
    return svc


def test_find_user_ids_queries_email_index_projecting_id() -> None:
    fake = _FakeDynamo(pages=[{"Items": [{"id": {"S": "u1"}}]}])

    ids = asyncio.run(_service(fake).find_user_ids_by_email("a@b.com"))

    assert ids == ["u1"]
    [q] = fake.queries
    assert q["TableName"] == "users-test"
    assert q["IndexName"] == "email-index"
    assert q["ProjectionExpression"] == "id"
    assert q["ExpressionAttributeValues"] == {":email": {"S": "a@b.com"}}


def test_find_user_ids_follows_pagination() -> None:
    fake = _FakeDynamo(
        pages=[
            {"Items": [{"id": {"S": "u1"}}], "LastEvaluatedKey": {"id": {"S": "u1"}}},
            {"Items": [{"id": {"S": "u2"}}]},
        ]
    )

    ids = asyncio.run(_service(fake).find_user_ids_by_email("dup@b.com"))

    assert ids == ["u1", "u2"]
    assert fake.queries[1]["ExclusiveStartKey"] == {"id": {"S": "u1"}}


def test_find_user_ids_empty() -> None:
    fake = _FakeDynamo(pages=[{"Items": []}])
    assert asyncio.run(_service(fake).find_user_ids_by_email("none@b.com")) == []


def test_create_user_claims_email_and_serializes_record() -> None:
    fake = _FakeDynamo()
    record = {
        "id": "u1",
        "email": "a@b.com",
        "email_verified": True,
        "about": "",
        "progress_timestamps": [1700000000000],
    }

    assert asyncio.run(_service(fake).create_user(record)) == "u1"

    [tx] = fake.transactions
    claim, user = (item["Put"] for item in tx["TransactItems"])
    assert claim["Item"] == {"id": {"S": f"{EMAIL_CLAIM_PREFIX}a@b.com"}, "user_id": {"S": "u1"}}
    assert claim["ConditionExpression"] == "attribute_not_exists(id)"
    assert user["TableName"] == "users-test"
    assert user["Item"] == {
        "id": {"S": "u1"},
        "email": {"S": "a@b.com"},
        "email_verified": {"BOOL": True},
        "progress_timestamps": {"L": [{"N": "1700000000000"}]},
    }


def test_create_user_conflict_raises_user_exists() -> None:
    err = ClientError(
        {
            "Error": {"Code": "TransactionCanceledException", "Message": "cancelled"},
            "CancellationReasons": [{"Code": "ConditionalCheckFailed"}, {"Code": "None"}],
        },
        "TransactWriteItems",
    )
    fake = _FakeDynamo(transact_error=err)

    with pytest.raises(UserExistsError):
        asyncio.run(_service(fake).create_user({"id": "u1", "email": "a@b.com"}))


def test_create_user_other_errors_propagate() -> None:
    err = ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
        "TransactWriteItems",
    )
    fake = _FakeDynamo(transact_error=err)

    with pytest.raises(ClientError):
        asyncio.run(_service(fake).create_user({"id": "u1", "email": "a@b.com"}))


def test_client_kwargs_include_endpoint_and_credentials_only_when_set(monkeypatch) -> None:
    for name in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN", "DYNAMODB_ENDPOINT_URL"):
        monkeypatch.delenv(name, raising=False)
    bare = dynamodb_client_kwargs(_settings(AWS_DEFAULT_REGION="eu-west-1"))
    assert bare == {"region_name": "eu-west-1"}

    full = dynamodb_client_kwargs(
        _settings(
            AWS_ACCESS_KEY_ID="AKIA",
            AWS_SECRET_ACCESS_KEY="secret",
            AWS_SESSION_TOKEN="token",
            DYNAMODB_ENDPOINT_URL="http://localhost:4566",
        )
    )
    assert full["aws_access_key_id"] == "AKIA"
    assert full["aws_session_token"] == "token"
    assert full["endpoint_url"] == "http://localhost:4566"


def test_create_user_rejects_unsupported_attribute_types() -> None:
    fake = _FakeDynamo()

    with pytest.raises(TypeError):
        asyncio.run(_service(fake).create_user({"id": "u1", "email": "a@b.com", "score": 1.5}))
    assert fake.transactions == []
