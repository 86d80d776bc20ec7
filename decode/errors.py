"""
User-facing errors.

Raised by the registry and command handlers; the coordinator turns each one
into a single `error{message}` event for the connection that caused it.
They never change room state and never reach the other participant.
"""


class GameError(Exception):
    message = "Something went wrong."

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class RoomNotFound(GameError):
    message = "Room not found. Check the code and try again."


class RoomFull(GameError):
    message = "Room is full."


class InvalidNumber(GameError):
    def __init__(self, number_length: int):
        super().__init__(f"Enter a valid {number_length}-digit number with no repeating digits.")


class NotYourTurn(GameError):
    message = "It's not your turn!"


class InvalidMessage(GameError):
    message = "Invalid message format"
