import json
import logging

from chat_core.infrastructure.logging.logger import JsonFormatter, logger, setup_logger


class SettingsStub:
    log_level = "INFO"
    log_redact_content = False

    def __init__(self, log_dir):
        self.log_dir = str(log_dir)


def make_record(msg, **extra):
    record = logging.LogRecord("chat_core", logging.WARNING, __file__, 1, msg, None, None)
    if extra:
        record.extra = extra
    return record


def test_json_formatter_merges_extra():
    line = JsonFormatter().format(make_record("Skipping frame", frame_index=3, code="MALFORMED_FRAME"))
    payload = json.loads(line)
    assert payload["level"] == "WARNING"
    assert payload["name"] == "chat_core"
    assert payload["msg"] == "Skipping frame"
    assert payload["frame_index"] == 3
    assert payload["ts"].endswith("Z")


def test_json_formatter_redacts():
    payload = json.loads(JsonFormatter(redact_content=True).format(make_record("x" * 100)))
    assert payload["msg"] == "x" * 64


def test_setup_logger_writes_json_lines(tmp_path):
    setup_logger(SettingsStub(tmp_path))
    setup_logger(SettingsStub(tmp_path))
    log_file = (tmp_path / "chat.log").resolve()
    handlers = [
        h for h in logger.handlers if isinstance(h, logging.FileHandler) and h.baseFilename == str(log_file)
    ]
    assert len(handlers) == 1

    logger.info("Completed turn", extra={"extra": {"reply_chars": 8}})
    handlers[0].flush()
    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[-1])["reply_chars"] == 8

    logger.removeHandler(handlers[0])
    handlers[0].close()
