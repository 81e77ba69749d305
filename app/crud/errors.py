# app/crud/errors.py


class PersistenceError(Exception):
    """A single insert or update failed; earlier writes of the same chain are kept."""

    def __init__(self, message: str, entity: str = None):
        super().__init__(message)
        self.entity = entity
