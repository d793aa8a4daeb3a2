class OutOfBoundsError(Exception):
    pass


class OutOfDataError(Exception):
    pass


class CorpusError(OSError):
    pass


class EngineSpawnError(Exception):
    pass


class TargetError(Exception):
    pass


class RequestError(Exception):
    pass


class ConnectError(RequestError):
    pass


class SendError(RequestError):
    pass


class RequestTimeoutError(RequestError, TimeoutError):
    pass


class RunTimeoutError(TimeoutError):
    pass
