class RelayError(Exception):
    """An expected failure whose message can be shown to the client that caused it."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidPayload(RelayError):
    pass


class InvalidVideoReference(RelayError):
    pass


class RoomNotFound(RelayError):
    def __init__(self, code: str):
        super().__init__(f"Room {code} not found")
        self.code = code
