from __future__ import annotations

import io
import json
from datetime import UTC, datetime

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody
from botocore.stub import ANY, Stubber

from webproject.aws.errors import classify_client_error, is_not_found
from webproject.aws.queue import QueueMessage, UploadQueue
from webproject.aws.storage import ObjectStore
from webproject.aws.topic import NotificationTopic

BUCKET = "test-bucket"
TOPIC_ARN = "arn:aws:sns:us-east-1:000000000000:test-topic"
QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/000000000000/test-queue"


def _client(service: str):
    return boto3.client(
        service,
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def s3():
    client = _client("s3")
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def sns():
    client = _client("sns")
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def sqs():
    client = _client("sqs")
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


# ---------------------------- object store ----------------------------


def test_list_entries_follows_pages_and_skips_directory_markers(s3):
    client, stubber = s3
    modified = datetime(2024, 1, 1, tzinfo=UTC)
    stubber.add_response(
        "list_objects_v2",
        {
            "IsTruncated": True,
            "NextContinuationToken": "page-2",
            "Contents": [
                {"Key": "a.png", "Size": 1, "LastModified": modified},
                {"Key": "thumbs/", "Size": 0, "LastModified": modified},
            ],
        },
        None,
    )
    stubber.add_response(
        "list_objects_v2",
        {"IsTruncated": False, "Contents": [{"Key": "b.png", "Size": 2, "LastModified": modified}]},
        None,
    )

    entries = ObjectStore(client, BUCKET).list_entries()

    assert [(e.key, e.size) for e in entries] == [("a.png", 1), ("b.png", 2)]


def test_list_entries_empty_bucket(s3):
    client, stubber = s3
    stubber.add_response("list_objects_v2", {"IsTruncated": False, "KeyCount": 0}, None)

    assert ObjectStore(client, BUCKET).list_keys() == []


def test_list_entries_propagates_access_denied(s3):
    client, stubber = s3
    stubber.add_client_error("list_objects_v2", service_error_code="AccessDenied", http_status_code=403)

    with pytest.raises(ClientError) as exc:
        ObjectStore(client, BUCKET).list_entries()
    assert classify_client_error(exc.value).error_code == "AccessDenied"


def test_head_maps_metadata(s3):
    client, stubber = s3
    modified = datetime(2024, 1, 2, tzinfo=UTC)
    stubber.add_response(
        "head_object",
        {"ContentLength": 42, "ContentType": "image/png", "LastModified": modified, "ETag": '"abc"'},
        {"Bucket": BUCKET, "Key": "a.png"},
    )

    meta = ObjectStore(client, BUCKET).head("a.png")

    assert meta == {
        "name": "a.png",
        "size": 42,
        "type": "image/png",
        "lastModified": modified,
        "etag": '"abc"',
        "storageClass": "STANDARD",
    }


def test_head_missing_object_is_not_found(s3):
    client, stubber = s3
    stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

    with pytest.raises(ClientError) as exc:
        ObjectStore(client, BUCKET).head("nope.png")
    assert is_not_found(exc.value)


def test_get_object_returns_bytes_and_type(s3):
    client, stubber = s3
    payload = b"\x89PNG"
    stubber.add_response(
        "get_object",
        {"Body": StreamingBody(io.BytesIO(payload), len(payload)), "ContentType": "image/png"},
        None,
    )

    assert ObjectStore(client, BUCKET).get_object("a.png") == (payload, "image/png")


def test_delete_and_ping(s3):
    client, stubber = s3
    stubber.add_response("delete_object", {}, {"Bucket": BUCKET, "Key": "a.png"})
    stubber.add_response("head_bucket", {}, {"Bucket": BUCKET})

    store = ObjectStore(client, BUCKET)
    store.delete("a.png")
    store.ping()


# ------------------------------- topic -------------------------------


def _subs(*items):
    return {
        "Subscriptions": [
            {
                "SubscriptionArn": arn,
                "Owner": "000000000000",
                "Protocol": protocol,
                "Endpoint": endpoint,
                "TopicArn": TOPIC_ARN,
            }
            for arn, protocol, endpoint in items
        ]
    }


def test_publish_returns_message_id(sns):
    client, stubber = sns
    stubber.add_response(
        "publish",
        {"MessageId": "sns-1"},
        {"TopicArn": TOPIC_ARN, "Subject": "s", "Message": "m", "MessageAttributes": ANY},
    )

    attrs = {"EventType": {"StringValue": "ImageUpload", "DataType": "String"}}
    assert NotificationTopic(client, TOPIC_ARN).publish("s", "m", attrs) == "sns-1"


def test_subscribe_email(sns):
    client, stubber = sns
    stubber.add_response(
        "subscribe",
        {"SubscriptionArn": "pending confirmation"},
        {"TopicArn": TOPIC_ARN, "Protocol": "email", "Endpoint": "a@example.com", "ReturnSubscriptionArn": True},
    )

    assert NotificationTopic(client, TOPIC_ARN).subscribe_email("a@example.com") == "pending confirmation"


def test_unsubscribe_found(sns):
    client, stubber = sns
    arn = TOPIC_ARN + ":sub-1"
    stubber.add_response(
        "list_subscriptions_by_topic",
        _subs(("other", "sms", "+10000000000"), (arn, "email", "a@example.com")),
        {"TopicArn": TOPIC_ARN},
    )
    stubber.add_response("unsubscribe", {}, {"SubscriptionArn": arn})

    assert NotificationTopic(client, TOPIC_ARN).unsubscribe_email("a@example.com") == arn


def test_unsubscribe_not_found(sns):
    client, stubber = sns
    stubber.add_response(
        "list_subscriptions_by_topic",
        _subs((TOPIC_ARN + ":sub-1", "email", "b@example.com")),
        {"TopicArn": TOPIC_ARN},
    )

    assert NotificationTopic(client, TOPIC_ARN).unsubscribe_email("a@example.com") is None


def test_unsubscribe_pending_confirmation_skips_call(sns):
    client, stubber = sns
    stubber.add_response(
        "list_subscriptions_by_topic",
        _subs(("PendingConfirmation", "email", "a@example.com")),
        {"TopicArn": TOPIC_ARN},
    )

    assert NotificationTopic(client, TOPIC_ARN).unsubscribe_email("a@example.com") == "PendingConfirmation"


# ------------------------------- queue -------------------------------


def test_send_serializes_event(sqs):
    client, stubber = sqs
    event = {"fileName": "a.png", "eventId": "e-1"}
    stubber.add_response(
        "send_message",
        {"MessageId": "sqs-1"},
        {"QueueUrl": QUEUE_URL, "MessageBody": json.dumps(event)},
    )

    assert UploadQueue(client, QUEUE_URL).send(event) == "sqs-1"


def test_receive_clamps_limits(sqs):
    client, stubber = sqs
    stubber.add_response(
        "receive_message",
        {"Messages": [{"MessageId": "m1", "ReceiptHandle": "rh-1", "Body": "{}"}]},
        {"QueueUrl": QUEUE_URL, "MaxNumberOfMessages": 10, "WaitTimeSeconds": 20},
    )

    messages = UploadQueue(client, QUEUE_URL).receive(max_messages=50, wait_seconds=60)

    assert messages == [QueueMessage(message_id="m1", body="{}", receipt_handle="rh-1")]


def test_delete_batch_reports_refused_ids(sqs):
    client, stubber = sqs
    stubber.add_response(
        "delete_message_batch",
        {
            "Successful": [{"Id": "0"}],
            "Failed": [{"Id": "1", "SenderFault": True, "Code": "ReceiptHandleIsInvalid"}],
        },
        {
            "QueueUrl": QUEUE_URL,
            "Entries": [{"Id": "0", "ReceiptHandle": "rh-1"}, {"Id": "1", "ReceiptHandle": "rh-2"}],
        },
    )

    failed = UploadQueue(client, QUEUE_URL).delete_batch(
        [QueueMessage("m1", "{}", "rh-1"), QueueMessage("m2", "{}", "rh-2")]
    )

    assert failed == ["m2"]


# ------------------------------- errors -------------------------------


@pytest.mark.parametrize(
    "code,not_found,retryable",
    [
        ("NoSuchKey", True, False),
        ("404", True, False),
        ("NotFound", True, False),
        ("NoSuchBucket", False, False),
        ("SlowDown", False, True),
        ("Throttling", False, True),
        ("AccessDenied", False, False),
    ],
)
def test_classify_client_error(code, not_found, retryable):
    err = ClientError({"Error": {"Code": code, "Message": "boom"}}, "Op")
    result = classify_client_error(err)
    assert result.error_code == code
    assert result.error_message == "boom"
    assert result.is_not_found is not_found
    assert result.is_retryable is retryable


def test_is_not_found_ignores_other_exceptions():
    assert is_not_found(ValueError("x")) is False
