LOG_FMT = "[{id}] {message}"


def get_message_id(message_id):
    return message_id or "UNKNOWN"


def samlsp_logging(logger, level, message, message_id, **kwargs):
    """
    Adds the id of the SAML message being handled to the log line.

    :type logger: logging.Logger
    :type level: int
    :type message: str
    :type message_id: str | None

    :param logger: Logger to use
    :param level: Logger level (ex: logging.DEBUG/logging.WARN/...)
    :param message: Message
    :param message_id: Request id or InResponseTo of the current flow
    :param kwargs: set exc_info=True to get an exception stack trace in the log
    """
    logline = LOG_FMT.format(id=get_message_id(message_id), message=message)
    logger.log(level, logline, **kwargs)
