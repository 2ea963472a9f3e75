from __future__ import annotations

import logging
import logging.handlers
import sys
from dataclasses import replace

from app.config import get_settings
from app.core.logging import TruncatedFormatter, _build_handlers, rotated_log_name


def test_rotated_log_name_uses_dash_suffix():
  assert rotated_log_name("/var/log/aura/app.log.1") == "/var/log/aura/app.log-1"
  assert rotated_log_name("/var/log/aura/app.log") == "/var/log/aura/app.log"


def test_truncated_formatter_keeps_head_and_tail():
  def _deep(level: int) -> None:
    if level == 0:
      raise RuntimeError("boom")
    _deep(level - 1)

  try:
    _deep(10)
  except RuntimeError:
    formatted = TruncatedFormatter().formatException(sys.exc_info())

  assert formatted.startswith("Traceback")
  assert "    ...\n" in formatted
  assert formatted.rstrip().endswith("RuntimeError: boom")


def test_file_handler_rotates_under_configured_limits(tmp_path):
  settings = replace(get_settings(), log_max_bytes=1024, log_backup_count=2)

  stream_handler, file_handler, log_path = _build_handlers(settings, tmp_path)
  try:
    record = logging.LogRecord("app.tests", logging.INFO, __file__, 1, "hello from the notification service", None, None)
    file_handler.handle(record)
    file_handler.flush()

    assert log_path.parent == tmp_path
    assert "hello from the notification service" in log_path.read_text(encoding="utf-8")
    assert isinstance(file_handler, logging.handlers.RotatingFileHandler)
    assert file_handler.maxBytes == 1024
    assert file_handler.backupCount == 2
    assert isinstance(stream_handler.formatter, TruncatedFormatter)
  finally:
    file_handler.close()
