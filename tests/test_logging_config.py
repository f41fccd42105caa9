"""Tests for logging setup and sensitive data masking."""

import logging

import pytest

from common.logging_config import SensitiveDataFilter, get_logger, setup_logging


def _record(msg, args=None):
    return logging.LogRecord('test', logging.INFO, __file__, 1, msg, args, None)


@pytest.mark.parametrize('message, secret', [
    ('redeeming KEY-ABCD-EFGH-JKMN now', 'KEY-ABCD-EFGH-JKMN'),
    ('session pgs_0f8c2a9e-1b7d-4c3e-9f21-8a6b5d4c3e2f issued', '0f8c2a9e-1b7d-4c3e-9f21-8a6b5d4c3e2f'),
    ('Authorization: Bearer abc.def.ghi', 'abc.def.ghi'),
    ('{"session_key": "pgs_secretvalue"}', 'secretvalue'),
    ('password=hunter2', 'hunter2'),
])
def test_filter_masks_secrets(message, secret):
    record = _record(message)

    assert SensitiveDataFilter().filter(record) is True
    assert secret not in record.getMessage()


def test_filter_masks_format_args():
    record = _record('token %s', ('KEY-ABCD-EFGH-JKMN',))

    SensitiveDataFilter().filter(record)

    assert record.getMessage() == 'token KEY-****-****-****'


def test_filter_leaves_ordinary_messages():
    record = _record('Stored inline object [object_id=1234] size=10')

    SensitiveDataFilter().filter(record)

    assert record.getMessage() == 'Stored inline object [object_id=1234] size=10'


def test_setup_logging_is_idempotent():
    logger = setup_logging('polygraf-test-component', log_level='DEBUG')
    again = setup_logging('polygraf-test-component', log_level='DEBUG')

    assert logger is again
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert isinstance(logger.handlers[0].filters[0], SensitiveDataFilter)


def test_get_logger_returns_named_logger():
    assert get_logger('polygraf.something').name == 'polygraf.something'
