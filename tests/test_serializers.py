import math

import pytest

from metacache.cache import CacheSerializationError, JSONSerializer


def test_json_serializer_roundtrip():
    serializer = JSONSerializer()
    value = {"table": "users", "columns": [{"name": "id", "nullable": False}], "rows": 10}

    assert serializer.loads(serializer.dumps(value)) == value


def test_copy_is_independent():
    serializer = JSONSerializer()
    value = {"indexes": ["pk_users"]}

    copied = serializer.copy(value)

    assert copied == value
    assert copied is not value
    assert copied["indexes"] is not value["indexes"]


@pytest.mark.parametrize("value", [object(), {1, 2}, math.nan, b"bytes"])
def test_unserializable_values_raise(value):
    with pytest.raises(CacheSerializationError):
        JSONSerializer().dumps(value)


def test_circular_reference_raises():
    value = []
    value.append(value)

    with pytest.raises(CacheSerializationError):
        JSONSerializer().dumps(value)


def test_custom_default_hook():
    serializer = JSONSerializer(default=lambda obj: sorted(obj))

    assert serializer.loads(serializer.dumps({"ids": {3, 1, 2}})) == {"ids": [1, 2, 3]}


def test_invalid_payload_raises_value_error():
    with pytest.raises(ValueError):
        JSONSerializer().loads(b"\xff\xfe not json")
