"""Shared fixtures for the ingestor tests."""
import os
from datetime import datetime, timezone

import boto3
import pytest
from moto import mock_aws

from processor.models import EventRow

BUSINESS_ID = '5f0c6d4e-8a1b-4c2d-9e3f-112233445566'
OTHER_BUSINESS_ID = '7a8b9c0d-1e2f-4a3b-8c4d-665544332211'
USER_ID = '0b1c2d3e-4f5a-4b6c-8d7e-8f9a0b1c2d3e'
OWNER_ID = '9e8d7c6b-5a4f-4e3d-a2c1-b0a9f8e7d6c5'


@pytest.fixture(autouse=True)
def aws_credentials():
    """Fake AWS credentials so boto3 never reaches a real account."""
    env = {
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
        'AWS_SECURITY_TOKEN': 'testing',
        'AWS_SESSION_TOKEN': 'testing',
        'AWS_DEFAULT_REGION': 'us-east-1',
    }
    saved = {key: os.environ.get(key) for key in env}
    os.environ.update(env)
    yield
    for key, value in saved.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture
def dynamodb():
    """Mock DynamoDB with the events, users and businesses tables."""
    with mock_aws():
        resource = boto3.resource('dynamodb', region_name='us-east-1')
        for name, key in (
            ('test-events', 'dedupe_key'),
            ('test-users', 'user_id'),
            ('test-businesses', 'business_id'),
        ):
            resource.create_table(
                TableName=name,
                KeySchema=[{'AttributeName': key, 'KeyType': 'HASH'}],
                AttributeDefinitions=[{'AttributeName': key, 'AttributeType': 'S'}],
                BillingMode='PAY_PER_REQUEST'
            )
        yield resource


def make_row(
    title='Jazz Night',
    start=datetime(2025, 6, 1, 18, 0, tzinfo=timezone.utc),
    end=datetime(2025, 6, 1, 22, 0, tzinfo=timezone.utc),
    location='Blue Room • Cape Town • South Africa',
    description='Live jazz',
    image=None,
    booking_url=None,
    business_id=BUSINESS_ID,
    created_by=USER_ID
):
    return EventRow(
        title=title,
        business_id=business_id,
        created_by=created_by,
        start_date=start,
        end_date=end,
        location=location,
        description=description,
        image=image,
        booking_url=booking_url
    )


def make_record(
    event_id='Z1',
    name='Jazz Night',
    start_date_time='2025-06-01T18:00:00Z',
    start_local_date=None,
    end_date_time=None,
    end_local_date=None,
    venue='Blue Room',
    city='Cape Town',
    country='South Africa',
    **extra
):
    """Build a Ticketmaster-shaped event record."""
    start = {}
    if start_date_time:
        start['dateTime'] = start_date_time
    if start_local_date:
        start['localDate'] = start_local_date
    end = {}
    if end_date_time:
        end['dateTime'] = end_date_time
    if end_local_date:
        end['localDate'] = end_local_date

    record = {
        'id': event_id,
        'name': name,
        'dates': {'start': start, 'end': end},
        '_embedded': {
            'venues': [{
                'name': venue,
                'city': {'name': city},
                'country': {'name': country}
            }]
        }
    }
    record.update(extra)
    return record
