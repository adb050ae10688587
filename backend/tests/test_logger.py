import logging

import pytest

from logger import CustomFormatter, get_logger, setup_logger


@pytest.fixture
def fresh_name():
    name = "dickerchen_test.fresh"
    yield name
    test_logger = logging.getLogger(name)
    for handler in list(test_logger.handlers):
        test_logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def root_handler():
    handler = logging.NullHandler()
    logging.getLogger().addHandler(handler)
    yield handler
    logging.getLogger().removeHandler(handler)


class TestSetupLogger:
    def test_handlers_attached_even_when_root_has_one(self, fresh_name, root_handler) -> None:
        configured = setup_logger(fresh_name)

        assert len(configured.handlers) == 2
        assert isinstance(configured.handlers[0].formatter, CustomFormatter)

    def test_second_call_keeps_the_same_handlers(self, fresh_name) -> None:
        first = setup_logger(fresh_name)
        handlers = list(first.handlers)

        second = setup_logger(fresh_name)

        assert second is first
        assert second.handlers == handlers

    def test_component_loggers_are_children(self) -> None:
        assert get_logger("push").name == "dickerchen.push"
        assert get_logger("push").parent is logging.getLogger("dickerchen")
