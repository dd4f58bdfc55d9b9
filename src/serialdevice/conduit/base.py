from abc import abstractmethod

from serialdevice.errors import ConfigurationError

# line terminator styles and the characters they stand for
TERMINATORS = {
    'CR': '\r',
    'LF': '\n',
    'CR/LF': '\r\n',
    'LF/CR': '\n\r',
}


def end_of_line(terminator):
    """
    Maps a terminator style to its characters.
    >>> end_of_line('CR/LF')
    '\\r\\n'
    """
    try:
        return TERMINATORS[terminator]
    except (KeyError, TypeError):
        raise ConfigurationError("Unknown terminator '%s', must be one of [%s]" %
                                 (terminator, ", ".join(TERMINATORS))) from None


class Conduit:
    """
    A line-oriented, two-way channel to a device.

    Lines are written and read as text. The conduit appends its terminator when writing and
    returns replies as received, terminator included.
    """

    @property
    @abstractmethod
    def target(self):
        """ the underlying port object """
        raise NotImplementedError

    @property
    @abstractmethod
    def is_open(self) -> bool:
        raise NotImplementedError

    @property
    @abstractmethod
    def eol(self) -> str:
        """ the line terminator characters """
        raise NotImplementedError

    @property
    @abstractmethod
    def baudrate(self) -> int:
        raise NotImplementedError

    @baudrate.setter
    @abstractmethod
    def baudrate(self, value: int):
        raise NotImplementedError

    @property
    @abstractmethod
    def timeout(self) -> float:
        raise NotImplementedError

    @abstractmethod
    def write_line(self, text: str):
        """ writes the text followed by the terminator. """
        raise NotImplementedError

    @abstractmethod
    def read_line(self) -> str:
        """ reads up to and including the terminator, waiting no longer than the timeout. """
        raise NotImplementedError

    @abstractmethod
    def flush_input(self):
        """ discards anything received but not yet read. """
        raise NotImplementedError

    @abstractmethod
    def close(self):
        raise NotImplementedError
