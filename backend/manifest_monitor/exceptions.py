"""Error types raised by the monitoring engine."""


class MonitorError(Exception):
    """Base class for all manifest monitor errors."""


class InvalidURLError(MonitorError):
    """Manifest URL is not an http(s) URL."""


class SessionNotFoundError(MonitorError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class PipelineError(MonitorError):
    """An error that aborts a single monitoring tick."""


class UnsupportedManifestTypeError(PipelineError):
    pass


class NoVariantsError(PipelineError):
    pass


class FetchError(PipelineError):
    pass


class DecodeError(PipelineError):
    pass
