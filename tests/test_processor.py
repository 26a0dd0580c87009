import logging

import pytest

from deploykit import Container, VariableProcessor
from deploykit.models import VariableMetadata
from deploykit.processor import EnvSecretResolver


class DictSecrets:
    def __init__(self, values):
        self.values = values

    def resolve(self, key, flow=None):
        return self.values.get(key)


class AsyncSecrets:
    async def resolve(self, key, flow=None):
        return f"async-{key}"


class BrokenSecrets:
    def resolve(self, key, flow=None):
        raise RuntimeError("vault down")


@pytest.mark.asyncio
async def test_process_resolves_each_type(monkeypatch):
    monkeypatch.setenv("DK_TEST_REGION", "eu-west-1")
    processor = VariableProcessor(secrets=DictSecrets({"db-pass": "s3cret"}))

    result = await processor.process(
        [
            {"name": "literal", "type": "value", "value": 3},
            {"name": "region", "type": "environment", "value": "DK_TEST_REGION"},
            {"name": "password", "type": "secret", "value": "db-pass"},
            {"name": "token", "type": "protected", "value": "missing", "default": "fallback"},
            {"name": "url", "type": "reference", "value": "endpoint"},
            {"name": "endpoint", "type": "reference"},
        ],
        scope={"endpoint": "http://svc"},
    )

    assert result == {
        "literal": 3,
        "region": "eu-west-1",
        "password": "s3cret",
        "token": "fallback",
        "url": "http://svc",
        "endpoint": "http://svc",
    }


@pytest.mark.asyncio
async def test_unresolved_without_default_is_none():
    processor = VariableProcessor()
    result = await processor.process([{"name": "ghost", "type": "reference"}], scope={})
    assert result == {"ghost": None}


@pytest.mark.asyncio
async def test_unknown_type_is_a_literal_and_strings_are_indexed():
    processor = VariableProcessor()
    result = await processor.process([{"name": "a", "type": "weird", "value": "x"}, "plain"])
    assert result == {"a": "x", "1": "plain"}


@pytest.mark.asyncio
async def test_empty_definitions_give_empty_map():
    processor = VariableProcessor()
    assert await processor.process(None) == {}
    assert await processor.process([]) == {}


@pytest.mark.asyncio
async def test_map_records_duplicates_as_warns():
    processor = VariableProcessor()
    mapped = await processor.map([
        {"name": "url", "type": "value", "value": "http://a"},
        {"name": "url", "type": "value", "value": "http://b"},
    ])
    assert mapped == {"items": {"url": "http://a"}, "warns": {"url": "http://b"}}


@pytest.mark.asyncio
async def test_map_reads_untyped_outputs_from_scope():
    processor = VariableProcessor()
    mapped = await processor.map([{"name": "msg"}, {"value": "anon"}], scope={"msg": "hi"})
    assert mapped["items"] == {"msg": "hi", "default": None}


@pytest.mark.asyncio
async def test_map_does_not_mutate_definitions():
    meta = VariableMetadata(name="msg")
    await VariableProcessor().map([meta], scope={"msg": "hi"})
    assert meta.type is None


@pytest.mark.asyncio
async def test_secret_resolver_comes_from_container():
    c = Container()
    c.register([{"key": "SecretManager", "type": "value", "target": AsyncSecrets()}])
    processor = VariableProcessor(container=c)
    assert await processor.process([{"name": "k", "type": "secret", "value": "api"}]) == {"k": "async-api"}


@pytest.mark.asyncio
async def test_failing_secret_lookup_logs_and_uses_default(caplog):
    processor = VariableProcessor(secrets=BrokenSecrets())
    with caplog.at_level(logging.ERROR):
        result = await processor.process([{"name": "k", "type": "secret", "value": "api", "default": "d"}])
    assert result == {"k": "d"}
    assert "Secret lookup failed for api" in caplog.text


@pytest.mark.asyncio
async def test_env_secret_resolver(monkeypatch):
    monkeypatch.setenv("SECRET_API", "from-env")
    processor = VariableProcessor(secrets=EnvSecretResolver(prefix="SECRET_"))
    assert await processor.process([{"name": "k", "type": "secret", "value": "API"}]) == {"k": "from-env"}
