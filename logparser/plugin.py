"""LogParserPlugin: stream and parse log files into measurements.

``start()`` compiles every parser, opens one tail session per file and
spawns one dispatcher thread per session. Each dispatcher offers every line
to every parser and forwards the successful results to the accumulator.
``stop()`` stops all sessions and waits for every dispatcher to exit.
"""

import logging
import threading
from enum import Enum

from logparser.config import SAMPLE_CONFIG, Config
from logparser.errors import NoParserConfiguredError, ParseError, PluginStateError
from logparser.metrics import Metrics
from logparser.parser import GrokParser, LogParser
from logparser.tail import DEFAULT_POLL_INTERVAL, TailManager, TailSession

logger = logging.getLogger(__name__)


class PluginState(Enum):
    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"


class LogParserPlugin:
    def __init__(self, files: list[str], parsers: list[LogParser | None],
                 from_beginning: bool = False,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 metrics: Metrics | None = None,
                 tail_manager: TailManager | None = None):
        self.files = list(files)
        self.from_beginning = from_beginning
        self.metrics = metrics or Metrics()

        # The lock guards state, parsers and sessions during start/stop only;
        # dispatchers read the parser tuple without it once started.
        self._lock = threading.Lock()
        self._state = PluginState.CREATED
        self._parsers: tuple[LogParser, ...] = tuple(p for p in parsers if p is not None)
        self._tails = tail_manager or TailManager(poll_interval=poll_interval)
        self._dispatchers: list[threading.Thread] = []
        self._acc = None

    @classmethod
    def from_config(cls, config: Config) -> "LogParserPlugin":
        parsers = [GrokParser.from_config(g) for g in config.grok]
        return cls(
            files=config.files,
            parsers=parsers,
            from_beginning=config.from_beginning,
            poll_interval=config.poll_interval,
        )

    @property
    def state(self) -> PluginState:
        return self._state

    @property
    def parsers(self) -> tuple[LogParser, ...]:
        return self._parsers

    @property
    def sessions(self) -> list[TailSession]:
        return self._tails.sessions

    @property
    def dispatchers(self) -> list[threading.Thread]:
        return list(self._dispatchers)

    def description(self) -> str:
        return "Stream and parse log file(s)."

    def sample_config(self) -> str:
        return SAMPLE_CONFIG

    def gather(self, accumulator) -> None:
        # Measurements are pushed by the dispatchers, nothing to poll.
        return None

    def start(self, accumulator) -> None:
        """Compile parsers and start tailing.

        Raises CompileError or NoParserConfiguredError before anything is
        opened. Raises FileOpenError after start if some files could not be
        tailed; the others keep running and stop() must still be called.
        """
        with self._lock:
            if self._state is not PluginState.CREATED:
                raise PluginStateError(f"cannot start plugin in state {self._state.value!r}")
            if not self._parsers:
                raise NoParserConfiguredError("logparser input plugin: no parsers defined")

            for parser in self._parsers:
                parser.compile()

            self._acc = accumulator
            sessions, error = self._tails.start(self.files, self.from_beginning)
            for session in sessions:
                t = threading.Thread(target=self._receiver, args=(session,),
                                     name=f"dispatch:{session.path}", daemon=True)
                t.start()
                self._dispatchers.append(t)
            self._state = PluginState.STARTED

        logger.info("Started: %d file(s), %d parser(s)", len(sessions), len(self._parsers))
        if error is not None:
            raise error

    def _receiver(self, session: TailSession):
        """Consume one session's lines until it is stopped."""
        for line in session.lines():
            if line.error is not None:
                self.metrics.increment("read_errors")
                logger.error("Error tailing file %s: %s", session.path, line.error)
                continue

            self.metrics.increment("lines_read")
            for parser in self._parsers:
                try:
                    m = parser.parse_line(line.text)
                except ParseError as e:
                    self.metrics.increment("parse_errors")
                    logger.warning("Malformed log line in %s: [%s], Error: %s",
                                   session.path, line.text, e)
                    continue
                self._acc.add_fields(m.name, m.fields, m.tags, m.timestamp)
                self.metrics.increment("measurements")

    def stop(self) -> None:
        """Stop every session and block until every dispatcher has exited."""
        with self._lock:
            if self._state is not PluginState.STARTED:
                return
            self._tails.stop_all()
            for t in self._dispatchers:
                t.join()
            self._dispatchers.clear()
            self._state = PluginState.STOPPED
        logger.info("Stopped")
