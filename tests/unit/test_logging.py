import logging

import pytest

from dealscout.config.log import LOG_FORMAT, setup_logging


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _ours(root):
    return [h for h in root.handlers if getattr(h, "_dealscout_handler", None)]


def test_setup_is_idempotent(restore_root, tmp_path):
    log_file = tmp_path / "logs" / "dealscout.log"
    setup_logging("info", str(log_file))
    setup_logging("DEBUG", str(log_file))

    assert len(_ours(restore_root)) == 2
    assert restore_root.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING

    logging.getLogger("dealscout.test").info("hello file")
    for h in _ours(restore_root):
        h.flush()
    text = log_file.read_text(encoding="utf-8")
    assert "| INFO     | dealscout.test | hello file" in text
    assert LOG_FORMAT.startswith("%(asctime)s")
