import logging


class SingleLineNonEmptyFilter(logging.Filter):
    """
    Keeps probe output readable in the log: one line per record, at most
    `max_length` characters, and nothing at all for an empty message.
    """
    def __init__(self, max_length=None):
        super().__init__()
        self.max_length = max_length

    def filter(self, record: logging.LogRecord) -> int:
        try:
            msg = str(record.getMessage())
        except Exception:
            return 0

        sanitized = " ".join(msg.splitlines()).strip()
        if not sanitized:
            return 0

        if self.max_length and len(sanitized) > self.max_length:
            cut = len(sanitized) - self.max_length
            sanitized = f"{sanitized[:self.max_length]}... [{cut} more characters]"

        if sanitized != msg:
            record.msg = sanitized
            record.args = ()
        return 1
