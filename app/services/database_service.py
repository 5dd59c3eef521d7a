import logging
from typing import Any, Dict, List
from aiobotocore.session import get_session
from botocore.exceptions import ClientError

from app.core.config import Settings
from app.core.exceptions import UserExistsError

logger = logging.getLogger(__name__)

# Marker rows that claim an email inside the users table. They carry no
# ``email`` attribute, so they never appear in the email index.
EMAIL_CLAIM_PREFIX = "EMAIL#"


def dynamodb_client_kwargs(settings: Settings) -> Dict[str, Any]:
    """Keyword arguments for ``session.create_client("dynamodb", ...)``."""
    client_kwargs: Dict[str, Any] = {"region_name": settings.AWS_DEFAULT_REGION}
    if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
        client_kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
        client_kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
    if settings.AWS_SESSION_TOKEN:
        client_kwargs["aws_session_token"] = settings.AWS_SESSION_TOKEN
    if settings.DYNAMODB_ENDPOINT_URL:
        client_kwargs["endpoint_url"] = settings.DYNAMODB_ENDPOINT_URL
    return client_kwargs


class DynamoDBService:
    """Small wrapper around an aiobotocore DynamoDB client for the users table.

    Users are keyed by ``id`` and looked up through a global secondary index
    on ``email``. DynamoDB cannot enforce uniqueness on a non-key attribute,
    so inserts also write a claim row keyed by the email inside the same
    transaction.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.table_name = settings.DYNAMODB_USERS_TABLE_NAME
        self.email_index = settings.DYNAMODB_USERS_EMAIL_INDEX
        # aiobotocore session used to create async clients
        self.session = get_session()

    async def _get_client(self):
        """Create and return an async DynamoDB client.

        The method returns a client instance that can be used in an
        async context manager (``async with client as dynamodb``).
        """
        return self.session.create_client("dynamodb", **dynamodb_client_kwargs(self.settings))

    # ---- Serialization helpers -------------------------------------------------
    def _serialize_value(self, value: Any) -> Dict[str, Any]:
        """Serialize one user attribute into the DynamoDB wire format.

        User records only hold booleans, integers, strings and integer lists
        (``progress_timestamps``); anything else is a programming error.
        """
        if isinstance(value, bool):
            return {"BOOL": value}
        if isinstance(value, int):
            return {"N": str(value)}
        if isinstance(value, str):
            return {"S": value}
        if isinstance(value, list) and all(isinstance(n, int) and not isinstance(n, bool) for n in value):
            return {"L": [{"N": str(n)} for n in value]}
        raise TypeError(f"Unsupported user attribute type: {type(value).__name__}")

    def _serialize_item(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Convert a Python dict into a DynamoDB Item dict.

        Note: empty strings are omitted because DynamoDB does not accept
        empty string attributes on index keys.
        """
        item: Dict[str, Any] = {}
        for key, value in record.items():
            if isinstance(value, str) and value == "":
                continue
            item[key] = self._serialize_value(value)
        return item

    # ---- Public methods -------------------------------------------------------
    async def find_user_ids_by_email(self, email: str) -> List[str]:
        """Return the ids of every user whose email matches exactly.

        Only the ``id`` attribute is projected. Follows pagination so the
        caller sees every match. ClientError is logged and re-raised.
        """
        ids: List[str] = []
        query_kwargs: Dict[str, Any] = {
            "TableName": self.table_name,
            "IndexName": self.email_index,
            "KeyConditionExpression": "email = :email",
            "ExpressionAttributeValues": {":email": {"S": email}},
            "ProjectionExpression": "id",
        }
        try:
            client = await self._get_client()
            async with client as dynamodb:
                while True:
                    response = await dynamodb.query(**query_kwargs)
                    ids.extend(item["id"]["S"] for item in response.get("Items", []))
                    last_key = response.get("LastEvaluatedKey")
                    if not last_key:
                        break
                    query_kwargs["ExclusiveStartKey"] = last_key
        except ClientError:
            logger.exception("Failed to query users by email")
            raise

        logger.debug("Found %d user(s) for email lookup", len(ids))
        return ids

    async def create_user(self, record: Dict[str, Any]) -> str:
        """Insert a user row and claim its email in one transaction.

        Returns the new user's id. Raises UserExistsError when the email
        (or id) has already been claimed by another writer; other
        ClientErrors are logged and re-raised.
        """
        email = record["email"]
        claim = {
            "id": {"S": f"{EMAIL_CLAIM_PREFIX}{email}"},
            "user_id": {"S": record["id"]},
        }
        try:
            client = await self._get_client()
            async with client as dynamodb:
                await dynamodb.transact_write_items(
                    TransactItems=[
                        {
                            "Put": {
                                "TableName": self.table_name,
                                "Item": claim,
                                "ConditionExpression": "attribute_not_exists(id)",
                            }
                        },
                        {
                            "Put": {
                                "TableName": self.table_name,
                                "Item": self._serialize_item(record),
                                "ConditionExpression": "attribute_not_exists(id)",
                            }
                        },
                    ]
                )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            reasons = [r.get("Code") for r in e.response.get("CancellationReasons", [])]
            if code == "TransactionCanceledException" and "ConditionalCheckFailed" in reasons:
                logger.warning("User insert cancelled; email already claimed")
                raise UserExistsError(email) from e
            logger.exception("Failed to create user record")
            raise

        logger.info("Created user %s for %s", record["id"], email)
        return record["id"]
