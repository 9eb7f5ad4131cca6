"""
Outcome sinks.

Every terminal state of an orchestration run is written as one structured
record to a named sink (e.g. ``copart_good``, ``iaai_bad``). The file sink
appends one line per record to ``<log_dir>/<name>.log``.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

logger = logging.getLogger(__name__)

RECORD_FORMAT = '%(asctime)s -- %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class OutcomeSink(ABC):
    """Destination for structured outcome records."""

    @abstractmethod
    def emit(self, name: str, record: Dict[str, Any]) -> None:
        pass

    def close(self) -> None:
        """Release any open files."""


class FileOutcomeSink(OutcomeSink):
    """
    Appends JSON records to one log file per sink name.

    Loggers are owned by the sink instance rather than the global logging
    registry, so two sinks with different directories never share a file.
    """

    def __init__(self, log_dir: Union[str, Path]):
        self.log_dir = Path(log_dir)
        self._loggers: Dict[str, logging.Logger] = {}
        self._lock = threading.Lock()

    def _get_logger(self, name: str) -> logging.Logger:
        with self._lock:
            sink_logger = self._loggers.get(name)
            if sink_logger is not None:
                return sink_logger
            self.log_dir.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(self.log_dir / f'{name}.log', encoding='utf-8')
            handler.setFormatter(logging.Formatter(RECORD_FORMAT, DATE_FORMAT))
            # Not registered with logging.getLogger: records go only to this file
            sink_logger = logging.Logger(f'outcome.{name}', logging.INFO)
            sink_logger.addHandler(handler)
            self._loggers[name] = sink_logger
            return sink_logger

    def close(self) -> None:
        """Close every open sink file."""
        with self._lock:
            for sink_logger in self._loggers.values():
                for handler in sink_logger.handlers:
                    handler.close()
            self._loggers.clear()

    def emit(self, name: str, record: Dict[str, Any]) -> None:
        try:
            line = json.dumps(record, ensure_ascii=False, default=str)
            self._get_logger(name).info(line)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to write outcome record to {name}: {e}")


class MemoryOutcomeSink(OutcomeSink):
    """Keeps records in memory."""

    def __init__(self):
        self.records: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, name: str, record: Dict[str, Any]) -> None:
        self.records.append((name, record))

    def names(self) -> List[str]:
        return [name for name, _ in self.records]

    def last(self, name: str) -> Dict[str, Any]:
        for sink_name, record in reversed(self.records):
            if sink_name == name:
                return record
        raise KeyError(name)
