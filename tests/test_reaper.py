"""Tests for the session reaper."""

import asyncio
import logging
import os
import time

import pytest

from common.logging_config import get_logger
from relay import reaper as reaper_module
from relay.auth import AuthStore
from relay.config import RelayConfig
from relay.protocol import RelayProtocolHandler
from relay.reaper import SessionReaper
from relay.session_registry import SessionRegistry

CHUNK = b'r' * 16


def make_reaper(tmp_path, ttl=3600, interval=300, clock=time.time):
    config = RelayConfig(
        storage_root=tmp_path / 'relay', chunk_size=16, session_quota=1024,
        session_ttl_seconds=ttl, reap_interval_seconds=interval, auth_enabled=False
    )
    handler = RelayProtocolHandler.from_config(config)
    return SessionReaper(config, handler.registry, clock=clock), handler


def age(registry: SessionRegistry, session_id: str, mtime: float) -> None:
    location = registry.resolve(session_id)
    for entry in location.iterdir():
        os.utime(entry, (mtime, mtime))
    os.utime(location, (mtime, mtime))


def test_reap_removes_drained_sessions(tmp_path):
    reaper, handler = make_reaper(tmp_path)
    session_id = handler.create_session().session_id
    handler.upload_chunk(session_id, 0, 1, 'a.bin', CHUNK)
    handler.confirm_chunk(session_id, 0)

    assert reaper.reap_once() == [session_id]
    assert not handler.registry.exists(session_id)


def test_reap_keeps_active_sessions(tmp_path):
    reaper, handler = make_reaper(tmp_path)
    created = handler.create_session().session_id
    transferring = handler.create_session().session_id
    handler.upload_chunk(transferring, 0, 2, 'a.bin', CHUNK)
    handler.upload_chunk(transferring, 1, 2, 'a.bin', CHUNK)
    handler.confirm_chunk(transferring, 0)

    assert reaper.reap_once() == []
    assert handler.registry.exists(created)
    assert handler.registry.exists(transferring)


def test_reap_removes_idle_sessions(tmp_path):
    now = 1_000_000.0
    reaper, handler = make_reaper(tmp_path, ttl=3600, clock=lambda: now)
    stale = handler.create_session().session_id
    fresh = handler.create_session().session_id
    handler.upload_chunk(stale, 0, 3, 'a.bin', CHUNK)
    age(handler.registry, stale, now - 7200)
    age(handler.registry, fresh, now - 60)

    assert reaper.reap_once() == [stale]
    assert handler.registry.exists(fresh)


def test_zero_ttl_never_expires(tmp_path):
    reaper, handler = make_reaper(tmp_path, ttl=0, clock=lambda: 10 ** 10)
    session_id = handler.create_session().session_id
    age(handler.registry, session_id, 0)

    assert reaper.reap_once() == []


def test_reap_skips_password_and_keys(tmp_path):
    reaper, handler = make_reaper(tmp_path, ttl=1, clock=lambda: 10 ** 10)
    root = handler.config.storage_root
    handler.registry.ensure_root()
    (root / '.keys').mkdir()
    (root / '.password').write_text('hash')

    assert reaper.reap_once() == []
    assert (root / '.keys').is_dir()


def test_reap_on_missing_root(tmp_path):
    reaper, _ = make_reaper(tmp_path)
    assert reaper.reap_once() == []


def test_reap_continues_past_corrupt_session(tmp_path):
    reaper, handler = make_reaper(tmp_path)
    corrupt = handler.create_session().session_id
    (handler.registry.resolve(corrupt) / 'meta.json').write_text('garbage')
    drained = handler.create_session().session_id
    handler.upload_chunk(drained, 0, 1, 'a.bin', CHUNK)
    handler.confirm_chunk(drained, 0)

    assert reaper.reap_once() == [drained]
    assert handler.registry.exists(corrupt)


def test_reap_purges_expired_api_keys(tmp_path):
    now = 1_000_000.0
    config = RelayConfig(
        storage_root=tmp_path / 'relay', chunk_size=16, session_quota=1024,
        api_key_ttl_seconds=60, auth_enabled=True
    )
    handler = RelayProtocolHandler.from_config(config)
    auth_store = AuthStore(config, clock=lambda: now)
    auth_store.set_initial_password('secret')
    stale_key = auth_store.login('secret')
    stale_file = next(config.keys_dir.iterdir())
    os.utime(stale_file, (now - 120, now - 120))
    fresh_key = auth_store.login('secret')
    fresh_file = next(p for p in config.keys_dir.iterdir() if p != stale_file)
    os.utime(fresh_file, (now - 30, now - 30))
    reaper = SessionReaper(config, handler.registry, clock=lambda: now, auth_store=auth_store)

    reaper.reap_once()

    assert not stale_file.exists()
    assert not auth_store.is_valid_key(stale_key)
    assert auth_store.is_valid_key(fresh_key)
    assert len(list(config.keys_dir.iterdir())) == 1
    assert config.password_file.is_file()


def test_reap_logs_through_shared_logger(tmp_path):
    reaper, handler = make_reaper(tmp_path)
    session_id = handler.create_session().session_id
    handler.upload_chunk(session_id, 0, 1, 'a.bin', CHUNK)
    handler.confirm_chunk(session_id, 0)
    records = []
    capture = logging.Handler(level=logging.INFO)
    capture.emit = records.append
    reaper_logger = get_logger('relay.reaper')
    old_level = reaper_logger.level
    reaper_logger.addHandler(capture)
    reaper_logger.setLevel(logging.INFO)

    try:
        reaper.reap_once()
    finally:
        reaper_logger.removeHandler(capture)
        reaper_logger.setLevel(old_level)

    assert reaper_module.logger is reaper_logger
    assert any(session_id in r.getMessage() for r in records)


@pytest.mark.asyncio
async def test_start_and_stop(tmp_path):
    reaper, handler = make_reaper(tmp_path, interval=1)

    await reaper.start()
    assert reaper._running
    await reaper.start()

    await reaper.stop()
    assert not reaper._running
    assert reaper._task.done()


@pytest.mark.asyncio
async def test_background_loop_reaps(tmp_path):
    reaper, handler = make_reaper(tmp_path, interval=1)
    session_id = handler.create_session().session_id
    handler.upload_chunk(session_id, 0, 1, 'a.bin', CHUNK)
    handler.confirm_chunk(session_id, 0)
    reaper.interval_seconds = 0.01

    await reaper.start()
    for _ in range(200):
        if not handler.registry.exists(session_id):
            break
        await asyncio.sleep(0.01)
    await reaper.stop()

    assert not handler.registry.exists(session_id)


@pytest.mark.asyncio
async def test_stop_without_start(tmp_path):
    reaper, _ = make_reaper(tmp_path)
    await reaper.stop()
