"""Read-only lookups against the users and businesses tables."""
import logging
import re
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE
)


def is_uuid(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(UUID_PATTERN.match(value.strip()))


class IdentityStore:
    """Validates user identities and looks up business owners."""

    def __init__(self, users_table_name: str, businesses_table_name: str, dynamodb=None):
        """
        Args:
            users_table_name: Table keyed by ``user_id``
            businesses_table_name: Table keyed by ``business_id`` with ``owner_id``
            dynamodb: Optional boto3 DynamoDB resource to reuse
        """
        self.dynamodb = dynamodb or boto3.resource('dynamodb')
        self.users_table = self.dynamodb.Table(users_table_name)
        self.businesses_table = self.dynamodb.Table(businesses_table_name)

    def user_exists(self, user_id: Optional[str]) -> bool:
        """Return True if user_id is a UUID present in the users table."""
        if not is_uuid(user_id):
            return False

        try:
            item = self.users_table.get_item(
                Key={'user_id': user_id.strip()}
            ).get('Item')
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not validate user {user_id}: {e}")
            return False
        return item is not None

    def get_business_owner(self, business_id: str) -> Optional[str]:
        """Return the registered owner of a business, or None."""
        try:
            item = self.businesses_table.get_item(
                Key={'business_id': business_id}
            ).get('Item')
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not look up owner of business {business_id}: {e}")
            return None

        if not item:
            return None
        return item.get('owner_id') or None
