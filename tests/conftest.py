"""
Pytest configuration and fixtures.
"""

import logging

import pytest

from phasegate.models import Phase
from phasegate.orchestration import TransitionEvaluator
from phasegate.utils.logging_config import ROOT_LOGGER_NAME
from phasegate.utils.structured_log import reset_audit_logging
from tests.fixtures.records import fixed_clock, satisfied_records, work_package
from tests.fixtures.stores import InstrumentedStore


@pytest.fixture(autouse=True)
def _reset_logging():
    """Keep console handlers and structlog audit configuration from leaking between tests."""
    yield
    reset_audit_logging()
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def empty_store() -> InstrumentedStore:
    return InstrumentedStore()


@pytest.fixture
def detailing_wp():
    """Detailing work package with no drawings linked."""
    return work_package(Phase.DETAILING)


@pytest.fixture
def make_evaluator():
    """Factory building an evaluator with a fixed clock over the given store."""

    def _make(store, **kwargs):
        kwargs.setdefault("clock", fixed_clock)
        return TransitionEvaluator(store, **kwargs)

    return _make


@pytest.fixture
def satisfied_store():
    """Factory: (work package, store) with every check of the outgoing gate satisfied."""

    def _make(source: Phase, **store_kwargs):
        wp, records = satisfied_records(source)
        return wp, InstrumentedStore(records, **store_kwargs)

    return _make
